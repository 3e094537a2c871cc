"""Navigator OPVault Meta information.
   Navigator OPVault reads OPVault containers and serves decrypted
   credentials to local clients while the vault is unlocked.
"""
__title__ = 'navigator_opvault'
__description__ = (
   'Navigator OPVault reads encrypted OPVault containers and serves '
   'credentials to local clients from an auto-locking session.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-opvault'
