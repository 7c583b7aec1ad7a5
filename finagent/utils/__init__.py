"""Utility helpers: logging, settings and LangSmith tracing"""
