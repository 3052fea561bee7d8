"""
Marketplace listing routes
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from routes.dependencies import current_user_id, get_db
from services.marketplace_service import MarketplaceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings", tags=["marketplace"])


class CreateListing(BaseModel):
    game: str
    title: str
    description: str
    price: Decimal
    game_data: Dict[str, Any] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list)


@router.get("")
def browse_listings(game: Optional[str] = None,
                    search: Optional[str] = None,
                    min_price: Optional[Decimal] = None,
                    max_price: Optional[Decimal] = None,
                    db: Session = Depends(get_db)):
    listings = MarketplaceService(db).browse(game=game, search=search, min_price=min_price, max_price=max_price)
    return {"ok": True, "listings": [listing.to_dict() for listing in listings]}


@router.post("")
def create_listing(body: CreateListing,
                   user_id: str = Depends(current_user_id),
                   db: Session = Depends(get_db)):
    listing = MarketplaceService(db).create_listing(
        seller_id=user_id,
        game=body.game,
        title=body.title,
        description=body.description,
        price=body.price,
        game_data=body.game_data,
        images=body.images,
    )
    return {"ok": True, "listing": listing.to_dict()}


@router.get("/mine")
def my_listings(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    listings = MarketplaceService(db).list_seller_listings(user_id)
    return {"ok": True, "listings": [listing.to_dict() for listing in listings]}


@router.get("/{account_id}")
def get_listing(account_id: int, db: Session = Depends(get_db)):
    """Listing detail; each fetch counts as a view"""
    listing = MarketplaceService(db).get_listing(account_id, count_view=True)
    return {"ok": True, "listing": listing.to_dict()}


@router.delete("/{account_id}")
def remove_listing(account_id: int, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    listing = MarketplaceService(db).remove_listing(account_id, user_id)
    return {"ok": True, "listing": listing.to_dict()}
