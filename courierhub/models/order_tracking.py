from datetime import datetime

from extensions import db


class OrderTracking(db.Model):
    """Tracking history for an order, stored locally or mirrored from the courier"""
    __tablename__ = 'order_tracking'
    __table_args__ = (
        db.UniqueConstraint('order_id', 'timestamp', name='uq_order_tracking_order_id_timestamp'),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)

    status = db.Column(db.String(50), nullable=False)
    location = db.Column(db.String(200))
    message = db.Column(db.Text)
    description = db.Column(db.Text)

    # Courier-reported data
    courier_status = db.Column(db.String(100))
    courier_location = db.Column(db.String(200))
    courier_data = db.Column(db.JSON)
    expected_delivery = db.Column(db.DateTime)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.timestamp:
            self.timestamp = datetime.utcnow()

    def to_dict(self):
        """Convert tracking record to dictionary"""
        return {
            'id': self.id,
            'order_id': self.order_id,
            'status': self.status,
            'location': self.location,
            'message': self.message,
            'description': self.description or self.message,
            'courier_status': self.courier_status,
            'expected_delivery': self.expected_delivery.isoformat() if self.expected_delivery else None,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def upsert_from_update(cls, order_id, update):
        """Insert or refresh the row for a courier tracking update"""
        record = cls.query.filter_by(order_id=order_id, timestamp=update.timestamp).first()
        if record is None:
            record = cls(order_id=order_id, timestamp=update.timestamp)
            db.session.add(record)

        record.status = update.status
        record.location = update.location
        record.message = update.description
        record.description = update.description
        record.courier_status = update.courier_status
        record.courier_location = update.location
        record.courier_data = update.raw_data
        record.expected_delivery = update.expected_delivery
        return record


class OrderLog(db.Model):
    """Audit trail of actions taken on an order"""
    __tablename__ = 'order_logs'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    status = db.Column(db.String(50), nullable=False)
    message = db.Column(db.Text)
    created_by = db.Column(db.String(50), default='system')
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'status': self.status,
            'message': self.message,
            'created_by': self.created_by,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }
