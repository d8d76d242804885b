from kioskinstall.extensions import db


class KeyValueEntry(db.Model):
    """One opaque encoded value under a fixed key."""
    __tablename__ = 'kv_entry'

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.current_timestamp(),
        onupdate=db.func.current_timestamp(),
    )
