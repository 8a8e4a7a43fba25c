from functools import partial

from fastapi import Depends

from token_purchase_service.app.core.config import Settings, get_settings
from token_purchase_service.app.services.chain_service import TokenChainClient


def get_chain_factory(settings: Settings = Depends(get_settings)):
    # built lazily inside the reconciler so a bad chain config is recorded on the row
    return partial(TokenChainClient.from_settings, settings)
