"""
CoveTalks marketplace API

Connects speakers with organizations: directory, opportunity workflow,
messaging and Stripe-backed billing on top of Supabase.
"""

__version__ = "1.0.0"
