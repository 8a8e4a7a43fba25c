import logging
import re
from dataclasses import dataclass
from enum import Enum

from eth_account import Account
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from token_purchase_service.app.core.config import Settings

logger = logging.getLogger(__name__)

# decimals, balanceOf, transfer, owner, mint
TOKEN_ABI = [
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "owner",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "mint",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [],
    },
]


class ChainError(Exception):
    pass


class ChainNotConfigured(ChainError):
    pass


class RpcUnavailable(ChainError):
    pass


class InsufficientTokenBalance(ChainError):
    pass


class TransactionReverted(ChainError):
    pass


class DeliveryMode(str, Enum):
    MINT = "mint"
    TRANSFER = "transfer"


@dataclass
class DeliveryResult:
    mode: DeliveryMode
    tx_hash: str


HEX_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}")


def is_valid_wallet_address(address) -> bool:
    if not isinstance(address, str) or not HEX_ADDRESS.fullmatch(address):
        return False
    digits = address[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    # mixed case carries an EIP-55 checksum that has to match
    return Web3.is_checksum_address(address)


def to_base_units(token_amount: int, decimals: int) -> int:
    return int(token_amount) * 10 ** int(decimals)


def select_delivery_mode(owner: str | None, operator: str, balance: int, required: int) -> DeliveryMode:
    """Mint when the operating wallet owns the contract, otherwise transfer from its balance."""
    if owner and owner.lower() == operator.lower():
        return DeliveryMode.MINT
    if balance < required:
        raise InsufficientTokenBalance("Insufficient admin token balance")
    return DeliveryMode.TRANSFER


def deliver_tokens(chain, recipient: str, token_amount: int) -> DeliveryResult:
    """Send ``token_amount`` whole tokens to ``recipient`` through ``chain``.

    ``chain`` exposes ``operator_address``, ``ensure_connected``, ``owner``,
    ``decimals``, ``balance_of``, ``mint`` and ``transfer``. Ownership is read
    on every call because it can change between purchases.
    """
    chain.ensure_connected()

    decimals = chain.decimals()
    required = to_base_units(token_amount, decimals)
    owner = chain.owner()

    balance = 0
    if not owner or owner.lower() != chain.operator_address.lower():
        balance = chain.balance_of(chain.operator_address)

    mode = select_delivery_mode(owner, chain.operator_address, balance, required)
    logger.info("Delivering %s tokens to %s by %s", token_amount, recipient, mode.value)

    if mode is DeliveryMode.MINT:
        tx_hash = chain.mint(recipient, required)
    else:
        tx_hash = chain.transfer(recipient, required)

    return DeliveryResult(mode=mode, tx_hash=tx_hash)


class TokenChainClient:
    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        gas_limit: int = 100_000,
        rpc_timeout: float = 30,
        receipt_timeout: float = 120,
    ):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout}))
        self.account = Account.from_key(private_key)
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=TOKEN_ABI,
        )
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenChainClient":
        missing = [
            name for name in ("RPC_URL", "TOKEN_CONTRACT_ADDRESS", "ADMIN_PRIVATE_KEY")
            if not getattr(settings, name)
        ]
        if missing:
            raise ChainNotConfigured(f"Chain client not configured: missing {', '.join(missing)}")

        return cls(
            rpc_url=settings.RPC_URL,
            contract_address=settings.TOKEN_CONTRACT_ADDRESS,
            private_key=settings.ADMIN_PRIVATE_KEY,
            gas_limit=settings.TRANSFER_GAS_LIMIT,
            rpc_timeout=settings.RPC_TIMEOUT_SECONDS,
            receipt_timeout=settings.RECEIPT_TIMEOUT_SECONDS,
        )

    @property
    def operator_address(self) -> str:
        return self.account.address

    def ensure_connected(self):
        if not self.w3.is_connected():
            raise RpcUnavailable("RPC endpoint unreachable")

    def decimals(self) -> int:
        return self.contract.functions.decimals().call()

    def balance_of(self, address: str) -> int:
        return self.contract.functions.balanceOf(Web3.to_checksum_address(address)).call()

    def owner(self) -> str | None:
        try:
            return self.contract.functions.owner().call()
        except (ContractLogicError, BadFunctionCallOutput):
            # plain ERC-20 without Ownable
            return None

    def mint(self, to: str, amount: int) -> str:
        return self._submit(self.contract.functions.mint(Web3.to_checksum_address(to), amount))

    def transfer(self, to: str, amount: int) -> str:
        return self._submit(self.contract.functions.transfer(Web3.to_checksum_address(to), amount))

    def _submit(self, fn) -> str:
        sender = self.account.address
        tx = fn.build_transaction({
            "from": sender,
            "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
            "gas": self.gas_limit,
        })
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info("Token transaction sent: %s", Web3.to_hex(tx_hash))

        # one inclusion is enough
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt["status"] != 1:
            raise TransactionReverted(f"Transaction reverted: {Web3.to_hex(tx_hash)}")

        logger.info("Token transaction confirmed in block %s", receipt["blockNumber"])
        return Web3.to_hex(receipt["transactionHash"])
