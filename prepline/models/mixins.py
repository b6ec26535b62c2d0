from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class StoreScopedMixin:
    """Stores are owned elsewhere; rows only carry the opaque store id."""

    store_id = db.Column(db.String(64), nullable=False, index=True)

    @classmethod
    def for_store(cls, store_id):
        return cls.query.filter_by(store_id=str(store_id))


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=TimezoneUtils.utc_now,
        onupdate=TimezoneUtils.utc_now,
        nullable=False,
    )
