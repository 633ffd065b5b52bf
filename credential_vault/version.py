"""Credential Vault Meta information.
   Credential Vault encrypts user-supplied provider API keys at rest.
"""
__title__ = 'credential_vault'
__description__ = (
   'Credential Vault encrypts user-supplied AI provider API keys '
   'at rest with versioned master secrets.'
)
__version__ = '0.1.0'
__license__ = 'Apache-2.0'
