"""
Connector Infrastructure Package
External messaging and meeting integrations
"""
