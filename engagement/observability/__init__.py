"""Observability for the engagement core (Prometheus metrics)"""
