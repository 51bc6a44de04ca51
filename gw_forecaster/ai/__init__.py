"""
Generative-text endpoint integration.

Modules
-------
client      HTTP client (httpx) with fixture mode and candidate extraction.
generator   Payload builders and response parsers for every endpoint use.
"""
