"""
Network Diagram Backend - FastAPI service around the topology store.
"""
