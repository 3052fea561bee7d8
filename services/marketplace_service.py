"""
Marketplace Service - game account listings
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from models import AccountStatus, GameAccount, GameType, parse_status, utcnow
from services.user_service import UserService
from utils.atomic_transactions import atomic_transaction
from utils.exception_handler import (
    InvalidStateTransitionError, PermissionDeniedError, RecordNotFoundError, ValidationError,
)
from utils.input_validation import InputValidator, has_non_finite_number

logger = logging.getLogger(__name__)

MAX_LISTING_IMAGES = 10


class MarketplaceService:
    """Create, browse and retire listings"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserService(db)

    def create_listing(self,
                       seller_id: str,
                       game: str,
                       title: str,
                       description: str,
                       price: Any,
                       game_data: Optional[Dict[str, Any]] = None,
                       images: Optional[List[str]] = None) -> GameAccount:
        if game not in {g.value for g in GameType}:
            raise ValidationError("Invalid game selected")
        title = InputValidator.sanitize_input(InputValidator.validate_title(title))
        description = InputValidator.sanitize_input(InputValidator.validate_description(description))
        price = InputValidator.validate_price(price)

        game_data = dict(game_data or {})
        check = InputValidator.validate_game_specific_data(game, game_data)
        if not check.is_valid:
            raise ValidationError("; ".join(check.errors))
        if has_non_finite_number(game_data):
            raise ValidationError("Listing details must contain valid numbers")

        images = [url.strip() for url in (images or []) if url and url.strip()]
        if len(images) > MAX_LISTING_IMAGES:
            raise ValidationError(f"A listing can have at most {MAX_LISTING_IMAGES} images")

        self.users.require_active_user(seller_id)
        with atomic_transaction(self.db):
            listing = GameAccount(
                seller_id=seller_id,
                game=game,
                title=title,
                description=description,
                price=price,
                game_data=game_data,
                images=images,
                status=AccountStatus.ACTIVE.value,
                views=0,
            )
            self.db.add(listing)

        logger.info(f"🏷️ LISTING_CREATED: #{listing.id} {game} seller={seller_id} price={price}")
        return listing

    def get_listing(self, account_id: int, count_view: bool = False) -> GameAccount:
        if count_view:
            with atomic_transaction(self.db):
                self.db.execute(
                    update(GameAccount)
                    .where(GameAccount.id == account_id)
                    .values(views=GameAccount.views + 1)
                    .execution_options(synchronize_session=False)
                )
        listing = self.db.get(GameAccount, account_id, populate_existing=count_view)
        if listing is None:
            raise RecordNotFoundError(f"Listing {account_id} not found")
        # Fail fast on rows written with an unknown status
        parse_status(AccountStatus, listing.status, f"GameAccount {account_id}")
        return listing

    def browse(self,
               game: Optional[str] = None,
               search: Optional[str] = None,
               min_price: Optional[Decimal] = None,
               max_price: Optional[Decimal] = None) -> List[GameAccount]:
        """Active listings, newest first"""
        stmt = select(GameAccount).where(GameAccount.status == AccountStatus.ACTIVE.value)
        if game and game != "all":
            if game not in {g.value for g in GameType}:
                raise ValidationError("Invalid game selected")
            stmt = stmt.where(GameAccount.game == game)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(func.lower(GameAccount.title).like(term), func.lower(GameAccount.description).like(term))
            )
        if min_price is not None:
            stmt = stmt.where(GameAccount.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(GameAccount.price <= max_price)

        stmt = stmt.order_by(GameAccount.created_at.desc(), GameAccount.id.desc())
        return list(self.db.scalars(stmt))

    def list_seller_listings(self, seller_id: str) -> List[GameAccount]:
        stmt = (
            select(GameAccount)
            .where(GameAccount.seller_id == seller_id)
            .order_by(GameAccount.created_at.desc(), GameAccount.id.desc())
        )
        return list(self.db.scalars(stmt))

    def remove_listing(self, account_id: int, seller_id: str) -> GameAccount:
        """Seller withdraws an unsold listing"""
        listing = self.get_listing(account_id)
        if listing.seller_id != seller_id:
            raise PermissionDeniedError("Only the seller can remove this listing")

        with atomic_transaction(self.db):
            result = self.db.execute(
                update(GameAccount)
                .where(GameAccount.id == account_id, GameAccount.status == AccountStatus.ACTIVE.value)
                .values(status=AccountStatus.REMOVED.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateTransitionError("listing", listing.status, AccountStatus.REMOVED.value)

        self.db.refresh(listing)
        logger.info(f"🗑️ LISTING_REMOVED: #{account_id} by {seller_id}")
        return listing
