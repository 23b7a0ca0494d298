"""
zkp_auth/membership.py

Club gate: is the verified address a member (or the owner) of the required
club?

Two registries are read, in order:
  1) ClubManager.getClubDetails(club)          -> admin + active flag
  2) MembershipQuery.checkDetailedMembership() -> four membership flags

An inactive club admits nobody, not even its admin. Read failures are never
turned into a decision; they surface as ClubCheckError.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from web3 import Web3

from .chain import ChainClients, get_clients, same_address
from .config import Settings

logger = logging.getLogger(__name__)

CLUB_CHECK_FAILED = "CLUB_CHECK_FAILED"


CLUB_MANAGER_ABI = [
    {
        "inputs": [{"name": "domainName", "type": "string"}],
        "name": "getClubDetails",
        "outputs": [
            {"name": "domainId", "type": "uint256"},
            {"name": "admin", "type": "address"},
            {"name": "active", "type": "bool"},
            {"name": "memberCount", "type": "uint256"},
            {"name": "name", "type": "string"},
            {"name": "symbol", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "logoURL", "type": "string"},
            {"name": "bannerURL", "type": "string"},
            {"name": "baseURI", "type": "string"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

MEMBERSHIP_QUERY_ABI = [
    {
        "inputs": [
            {"name": "member", "type": "address"},
            {"name": "domainName", "type": "string"},
        ],
        "name": "checkDetailedMembership",
        "outputs": [
            {"name": "isPermanent", "type": "bool"},
            {"name": "isTemporary", "type": "bool"},
            {"name": "isTokenBased", "type": "bool"},
            {"name": "isCrossChain", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]


class ClubCheckError(Exception):
    code = CLUB_CHECK_FAILED


@dataclass
class ClubMembership:
    is_member: bool
    is_owner: bool
    club_name: str


class MembershipChecker:
    def __init__(
        self,
        settings: Settings,
        clients_factory: Callable[[Settings], ChainClients] = get_clients,
    ):
        self.settings = settings
        self.club_name = settings.REQUIRED_CLUB_NAME
        self.clients_factory = clients_factory

    def check(self, address: str) -> ClubMembership:
        w3 = self.clients_factory(self.settings).public

        try:
            club_manager = w3.eth.contract(
                address=self.settings.CLUB_MANAGER_ADDRESS,
                abi=CLUB_MANAGER_ABI,
            )
            details = club_manager.functions.getClubDetails(self.club_name).call()
            admin, active = details[1], details[2]

            if not active:
                logger.warning("[CLUB] Club %s is not active", self.club_name)
                return ClubMembership(is_member=False, is_owner=False, club_name=self.club_name)

            is_owner = same_address(admin, address)

            membership_query = w3.eth.contract(
                address=self.settings.MEMBERSHIP_QUERY_ADDRESS,
                abi=MEMBERSHIP_QUERY_ABI,
            )
            flags = membership_query.functions.checkDetailedMembership(
                Web3.to_checksum_address(address),
                self.club_name,
            ).call()
            is_permanent, is_temporary, is_token_based, is_cross_chain = flags
        except Exception as e:
            logger.error("[CLUB] Failed to check club membership: %s", e)
            raise ClubCheckError(CLUB_CHECK_FAILED) from e

        is_member = bool(is_permanent or is_temporary or is_token_based or is_cross_chain or is_owner)

        logger.info(
            "[CLUB] Club membership check for %s: isMember=%s, isOwner=%s",
            address, is_member, is_owner,
        )
        return ClubMembership(is_member=is_member, is_owner=is_owner, club_name=self.club_name)
