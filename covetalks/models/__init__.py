"""Pydantic models for records, requests and Stripe events"""
