"""Shipping address book."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import NotFound, StorageFailure
from models import Address

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("name", "phone", "province", "city", "district", "detail")


def serialize_address(address: Address) -> Dict[str, Any]:
    data = {field: getattr(address, field) for field in ADDRESS_FIELDS}
    data["id"] = address.id
    data["is_default"] = bool(address.is_default)
    return data


class AddressService:
    """
    Manages a user's shipping addresses.

    At most one address per user is the default. The database does not
    enforce this; every write that sets a default first clears the previous
    one in the same transaction.
    """

    def list_addresses(self, db: Session, user_id: str) -> List[Address]:
        """Default address first, then newest first."""
        return (
            db.query(Address)
            .filter(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.id.desc())
            .all()
        )

    def get_owned(self, db: Session, user_id: str, address_id: int) -> Optional[Address]:
        return db.query(Address).filter(
            Address.id == address_id,
            Address.user_id == user_id
        ).first()

    def _clear_default(self, db: Session, user_id: str, keep_id: Optional[int] = None) -> None:
        query = db.query(Address).filter(
            Address.user_id == user_id,
            Address.is_default.is_(True)
        )
        if keep_id is not None:
            query = query.filter(Address.id != keep_id)
        query.update({Address.is_default: False}, synchronize_session=False)

    def create_address(self, db: Session, user_id: str, data: Dict[str, Any]) -> Address:
        """
        Create an address for the user.

        Args:
            db: Database session
            user_id: User identifier
            data: Address fields plus optional ``is_default``

        Returns:
            The new address
        """
        is_default = bool(data.get("is_default", False))
        try:
            if is_default:
                self._clear_default(db, user_id)
            address = Address(
                user_id=user_id,
                is_default=is_default,
                **{field: data[field] for field in ADDRESS_FIELDS}
            )
            db.add(address)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to create address", extra={
                "user_id": user_id,
                "error": str(e)
            })
            raise StorageFailure() from e

        db.refresh(address)
        logger.info("Address created", extra={
            "user_id": user_id,
            "address_id": address.id,
            "is_default": is_default
        })
        return address

    def update_address(
        self,
        db: Session,
        user_id: str,
        address_id: int,
        data: Dict[str, Any]
    ) -> Address:
        """
        Replace the fields of one of the user's addresses.

        Raises:
            NotFound: If the address does not exist or belongs to another user
        """
        address = self.get_owned(db, user_id, address_id)
        if address is None:
            raise NotFound("Address")

        is_default = bool(data.get("is_default", False))
        try:
            if is_default:
                self._clear_default(db, user_id, keep_id=address_id)
            for field in ADDRESS_FIELDS:
                setattr(address, field, data[field])
            address.is_default = is_default
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to update address", extra={
                "user_id": user_id,
                "address_id": address_id,
                "error": str(e)
            })
            raise StorageFailure() from e

        db.refresh(address)
        return address

    def delete_address(self, db: Session, user_id: str, address_id: int) -> None:
        """
        Delete one of the user's addresses. Orders keep their own snapshot.

        Raises:
            NotFound: If the address does not exist or belongs to another user
        """
        address = self.get_owned(db, user_id, address_id)
        if address is None:
            raise NotFound("Address")

        try:
            db.delete(address)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to delete address", extra={
                "user_id": user_id,
                "address_id": address_id,
                "error": str(e)
            })
            raise StorageFailure() from e
