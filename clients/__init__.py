# Infrastructure clients
from clients.valkey_client import ValkeyClient
from clients.telegram_client import TelegramCodeDelivery
from clients.credential_client import SupabaseCredentialStore
