"""
Pipeline Module
===============

Bounded context that drains the job queues: embedding generation and
ticket classification, plus the crawl and reference-seeding triggers.
"""
