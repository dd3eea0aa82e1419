from .settings import StoreSettings
