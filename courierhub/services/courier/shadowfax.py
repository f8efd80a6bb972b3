"""
Shadowfax courier integration
"""
import logging
from datetime import datetime, timedelta

from .types import (
    CourierService, CourierAPIError, CourierAuthenticationError, CourierRateLimitError,
    RateQuote, ServiceType, ShipmentBooking, TrackingUpdate,
    parse_timestamp, transit_time_label,
)

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'new': 'pending',
    'pending': 'pending',
    'assigned_for_pickup': 'pickup_scheduled',
    'picked': 'picked_up',
    'in_transit': 'in_transit',
    'received_at_hub': 'in_transit',
    'ofd': 'out_for_delivery',
    'delivered': 'delivered',
    'rts': 'returned',
    'cancelled': 'cancelled',
}

SERVICE_TYPES = (
    ServiceType(code='standard', name='Standard', description='Standard delivery',
                estimated_days=3, is_express_delivery=False,
                features=['Standard', 'Doorstep Pickup']),
    ServiceType(code='express', name='Express', description='Express delivery',
                estimated_days=1, is_express_delivery=True,
                features=['Express', 'Same-day in metros']),
    ServiceType(code='hyperlocal', name='Hyperlocal', description='Intra-city delivery',
                estimated_days=1, is_express_delivery=True,
                features=['Hyperlocal', 'Same Day']),
)


def map_shadowfax_status(status):
    status = (status or '').strip().lower()
    if status.startswith('rto'):
        return 'returned'
    return STATUS_MAP.get(status, 'in_transit')


class ShadowfaxService(CourierService):
    courier_code = 'shadowfax'
    courier_name = 'Shadowfax'
    base_urls = {
        'sandbox': 'https://dale.staging.shadowfax.in',
        'production': 'https://dale.shadowfax.in',
    }

    @staticmethod
    def _address_payload(address):
        return {
            'name': address.name,
            'contact': CourierService.format_phone_number(address.phone),
            'email': address.email or '',
            'address_line_1': address.address_line1,
            'address_line_2': address.address_line2 or '',
            'city': address.city,
            'state': address.state,
            'pincode': address.pincode,
        }

    def can_deliver(self, pincode):
        if not self.validate_pincode(pincode):
            return False

        try:
            data = self._request('GET', '/api/v1/serviceability/', params={'pincode': pincode})
            return bool(data.get('serviceable'))
        except CourierAPIError as e:
            logger.error(f"Error checking Shadowfax serviceability for {pincode}: {e}")
            return False

    def get_service_types(self):
        return list(SERVICE_TYPES)

    def calculate_rate(self, pickup, delivery, shipment, service_type=None):
        selected = self.find_service_type(service_type or 'standard')
        chargeable_weight = self.chargeable_weight_for(shipment)

        payload = {
            'pickup_pincode': pickup.pincode,
            'drop_pincode': delivery.pincode,
            'weight': int(round(chargeable_weight * 1000)),  # grams
            'cod_amount': shipment.cod_amount or 0,
            'service': selected.code,
        }

        try:
            data = self._request('POST', '/api/v1/rates/', json=payload)
            total = float(data['total_charge'])
            base = float(data.get('freight_charge', 0))
            fuel = float(data.get('fuel_surcharge', 0))
            gst = float(data.get('gst', 0))
            cod = float(data.get('cod_charge', 0))
        except (CourierAuthenticationError, CourierRateLimitError):
            raise
        except (CourierAPIError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error calculating Shadowfax rates: {e}")
            raise CourierAPIError('Failed to calculate shipping rates', self.courier_code,
                                  raw_response=str(e)) from e

        return [RateQuote(
            courier_code=self.courier_code,
            courier_name=self.courier_name,
            service_type=selected,
            total_amount=total,
            base_amount=base,
            fuel_surcharge=fuel,
            gst_amount=gst,
            other_charges=cod,
            estimated_delivery=datetime.utcnow() + timedelta(days=selected.estimated_days),
            transit_time=transit_time_label(selected.estimated_days),
            features=list(selected.features),
        )]

    def book_shipment(self, pickup, delivery, shipment, service_type, order_id):
        selected = self.find_service_type(service_type)
        chargeable_weight = self.chargeable_weight_for(shipment)
        dims = shipment.dimensions

        payload = {
            'order_details': {
                'client_order_id': order_id,
                'actual_weight': int(round(shipment.weight * 1000)),
                'volumetric_weight': int(round(chargeable_weight * 1000)),
                'product_value': shipment.declared_value,
                'payment_mode': 'COD' if shipment.cod_amount else 'Prepaid',
                'cod_amount': shipment.cod_amount or 0,
                'service': selected.code,
            },
            'pickup_details': self._address_payload(pickup),
            'customer_details': self._address_payload(delivery),
            'product_details': [{
                'sku_name': shipment.contents,
                'price': shipment.declared_value,
                'quantity': 1,
                'length': dims.length if dims else 10,
                'width': dims.width if dims else 10,
                'height': dims.height if dims else 10,
            }],
        }

        try:
            data = self._request('POST', '/api/v3/clients/orders/', json=payload)
        except (CourierAuthenticationError, CourierRateLimitError):
            raise
        except CourierAPIError as e:
            logger.error(f"Error booking Shadowfax shipment for order {order_id}: {e}")
            raise CourierAPIError('Failed to book shipment with Shadowfax', self.courier_code,
                                  status_code=e.status_code, raw_response=e.raw_response) from e

        awb = data.get('awb_number') or (data.get('data') or {}).get('awb_number')
        if not awb:
            logger.error(f"Shadowfax returned no AWB for order {order_id}: {data}")
            raise CourierAPIError('Shadowfax booking failed', self.courier_code, raw_response=data)

        return ShipmentBooking(
            courier_order_id=awb,
            courier_tracking_id=awb,
            airway_bill=awb,
            label_url=data.get('label_url'),
            estimated_delivery=datetime.utcnow() + timedelta(days=selected.estimated_days),
            total_amount=shipment.declared_value,
            raw_response=data,
        )

    def track_shipment(self, tracking_id):
        try:
            data = self._request('GET', f"/api/v2/clients/orders/{tracking_id}/track/")
        except CourierAPIError as e:
            logger.error(f"Error tracking Shadowfax shipment {tracking_id}: {e}")
            raise CourierAPIError('Failed to track shipment', self.courier_code,
                                  status_code=e.status_code, raw_response=e.raw_response) from e

        updates = []
        for entry in data.get('tracking_details') or []:
            timestamp = parse_timestamp(entry.get('created'))
            if timestamp is None:
                logger.warning(f"Skipping Shadowfax event with unparseable timestamp: {entry!r}")
                continue
            status = entry.get('status') or ''
            updates.append(TrackingUpdate(
                status=map_shadowfax_status(status),
                status_code=status,
                location=entry.get('location'),
                timestamp=timestamp,
                description=entry.get('remarks') or status,
                courier_status=status,
                raw_data=entry,
            ))

        return sorted(updates, key=lambda u: u.timestamp, reverse=True)

    def cancel_shipment(self, courier_order_id):
        try:
            data = self._request('POST', '/api/v2/clients/orders/cancel/', json={
                'request_id': courier_order_id,
                'cancel_remarks': 'Cancelled by customer',
            })
            return data.get('responseCode') == 200 or data.get('status') == 'success'
        except CourierAPIError as e:
            logger.error(f"Error cancelling Shadowfax shipment {courier_order_id}: {e}")
            return False

    def generate_label(self, courier_order_id):
        try:
            data = self._request('GET', f"/api/v2/clients/orders/{courier_order_id}/label/")
        except CourierAPIError as e:
            logger.error(f"Error generating Shadowfax label for {courier_order_id}: {e}")
            raise CourierAPIError('Failed to generate shipping label', self.courier_code,
                                  status_code=e.status_code, raw_response=e.raw_response) from e
        return data.get('label_url') or ''

    def schedule_pickup(self, courier_order_id, pickup_date):
        try:
            data = self._request('POST', '/api/v2/clients/pickups/', json={
                'awb_numbers': [courier_order_id],
                'pickup_date': pickup_date.date().isoformat(),
            })
            return data.get('responseCode') == 200 or data.get('status') == 'success'
        except CourierAPIError as e:
            logger.error(f"Error scheduling Shadowfax pickup for {courier_order_id}: {e}")
            return False
