"""
Delhivery courier integration
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
    'Shipped': 'picked_up',
    'Dispatched': 'picked_up',
    'In Transit': 'in_transit',
    'Reached at destination hub': 'in_transit',
    'Out for Delivery': 'out_for_delivery',
    'Out For Delivery': 'out_for_delivery',
    'Delivered': 'delivered',
    'Delivered/Shipment Delivered': 'delivered',
    'RTO': 'returned',
    'Pending': 'pending',
}

SERVICE_TYPES = (
    ServiceType(code='E', name='Express', description='Express delivery service',
                estimated_days=1, is_express_delivery=True,
                features=['Express', 'Same Day in select cities']),
    ServiceType(code='S', name='Surface', description='Standard surface delivery',
                estimated_days=3, is_express_delivery=False,
                features=['Standard', 'Cost Effective']),
    ServiceType(code='C', name='Cash on Delivery', description='COD service',
                estimated_days=2, is_express_delivery=False,
                features=['COD', 'Payment on Delivery']),
)


def map_delhivery_status(status):
    return STATUS_MAP.get(status, 'in_transit')


class DelhiveryService(CourierService):
    courier_code = 'delhivery'
    courier_name = 'Delhivery'
    base_urls = {
        'sandbox': 'https://staging-express.delhivery.com',
        'production': 'https://track.delhivery.com',
    }

    def can_deliver(self, pincode):
        if not self.validate_pincode(pincode):
            return False

        try:
            data = self._request('GET', '/c/api/pin-codes/json/', params={'filter_codes': pincode})
            return bool(data.get('delivery_codes'))
        except CourierAPIError as e:
            logger.error(f"Error checking Delhivery pincode availability for {pincode}: {e}")
            return False

    def get_service_types(self):
        return list(SERVICE_TYPES)

    def calculate_rate(self, pickup, delivery, shipment, service_type=None):
        service_type = service_type or 'E'
        chargeable_weight = self.chargeable_weight_for(shipment)

        params = {
            'pickup_postcode': pickup.pincode,
            'delivery_postcode': delivery.pincode,
            'weight': chargeable_weight,
            'cod': shipment.cod_amount or 0,
            'mode': service_type,
        }

        try:
            data = self._request('GET', '/api/kinko/v1/invoice/charges/.json', params=params)
            selected = self.find_service_type(service_type)

            total = float(data['total_amount'])
            delivery_charges = float(data.get('delivery_charges', 0))
            cod_charges = float(data.get('cod_charges', 0))
        except (CourierAuthenticationError, CourierRateLimitError):
            raise
        except (CourierAPIError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error calculating Delhivery rates: {e}")
            raise CourierAPIError('Failed to calculate shipping rates', self.courier_code,
                                  raw_response=str(e)) from e

        return [RateQuote(
            courier_code=self.courier_code,
            courier_name=self.courier_name,
            service_type=selected,
            total_amount=total,
            base_amount=delivery_charges,
            fuel_surcharge=0,  # included in delivery_charges
            gst_amount=round(total - delivery_charges - cod_charges, 2),
            other_charges=cod_charges,
            estimated_delivery=datetime.utcnow() + timedelta(days=selected.estimated_days),
            transit_time=transit_time_label(selected.estimated_days),
            features=list(selected.features),
        )]

    def _build_booking_payload(self, pickup, delivery, shipment, service_type, order_id):
        chargeable_weight = self.chargeable_weight_for(shipment)
        dims = shipment.dimensions

        return {
            'shipments': [{
                'name': delivery.name,
                'add': delivery.full_address,
                'pin': delivery.pincode,
                'city': delivery.city,
                'state': delivery.state,
                'country': delivery.country or 'India',
                'phone': self.format_phone_number(delivery.phone),
                'order': order_id,
                'payment_mode': 'COD' if shipment.cod_amount else 'Prepaid',
                'return_pin': pickup.pincode,
                'return_city': pickup.city,
                'return_phone': self.format_phone_number(pickup.phone),
                'return_add': pickup.full_address,
                'return_state': pickup.state,
                'return_country': pickup.country or 'India',
                'products_desc': shipment.contents,
                'hsn_code': '',
                'cod_amount': shipment.cod_amount or 0,
                'order_date': datetime.utcnow().date().isoformat(),
                'total_amount': shipment.declared_value,
                'seller_add': pickup.full_address,
                'seller_name': pickup.name,
                'seller_inv': order_id,
                'quantity': 1,
                'waybill': '',
                'shipment_width': dims.width if dims else 10,
                'shipment_height': dims.height if dims else 10,
                'weight': chargeable_weight,
                'seller_gst_tin': '',
                'shipping_mode': service_type,
                'address_type': 'home',
            }],
            'pickup_location': {
                'name': pickup.name,
                'add': pickup.full_address,
                'city': pickup.city,
                'pin_code': pickup.pincode,
                'country': pickup.country or 'India',
                'phone': self.format_phone_number(pickup.phone),
            },
        }

    def book_shipment(self, pickup, delivery, shipment, service_type, order_id):
        payload = self._build_booking_payload(pickup, delivery, shipment, service_type, order_id)

        try:
            data = self._request('POST', '/api/cmu/create.json', json=payload)
        except (CourierAuthenticationError, CourierRateLimitError):
            raise
        except CourierAPIError as e:
            logger.error(f"Error booking Delhivery shipment for order {order_id}: {e}")
            raise CourierAPIError('Failed to book shipment with Delhivery', self.courier_code,
                                  status_code=e.status_code, raw_response=e.raw_response) from e

        if not data.get('success'):
            logger.error(f"Delhivery rejected booking for order {order_id}: {data}")
            raise CourierAPIError('Delhivery booking failed', self.courier_code, raw_response=data)

        waybill = data.get('waybill')
        return ShipmentBooking(
            courier_order_id=waybill,
            courier_tracking_id=waybill,
            airway_bill=waybill,
            label_url=data.get('label_url'),
            manifest_url=data.get('manifest_url'),
            estimated_delivery=datetime.utcnow() + timedelta(days=2),
            total_amount=shipment.declared_value,
            raw_response=data,
        )

    def _tracking_update(self, status, status_code, location, timestamp, description, raw):
        parsed = parse_timestamp(timestamp)
        if parsed is None:
            logger.warning(f"Skipping Delhivery scan with unparseable timestamp: {timestamp!r}")
            return None
        return TrackingUpdate(
            status=map_delhivery_status(status),
            status_code=status_code or status,
            location=location,
            timestamp=parsed,
            description=description or status,
            courier_status=status,
            raw_data=raw,
        )

    def track_shipment(self, tracking_id):
        try:
            data = self._request('GET', '/api/v1/packages/json/', params={'waybill': tracking_id})
        except CourierAPIError as e:
            logger.error(f"Error tracking Delhivery shipment {tracking_id}: {e}")
            raise CourierAPIError('Failed to track shipment', self.courier_code,
                                  status_code=e.status_code, raw_response=e.raw_response) from e

        updates = []
        shipments = data.get('ShipmentData') or []
        if shipments:
            shipment = shipments[0].get('Shipment') or {}

            current = shipment.get('Status')
            if current:
                updates.append(self._tracking_update(
                    current.get('Status'),
                    current.get('StatusType'),
                    current.get('StatusLocation'),
                    current.get('StatusDateTime'),
                    current.get('Instructions'),
                    current,
                ))

            for scan in shipment.get('ScanDetail') or []:
                updates.append(self._tracking_update(
                    scan.get('ScanType'),
                    scan.get('StatusCode'),
                    scan.get('ScanLocation'),
                    scan.get('ScanDateTime'),
                    scan.get('Instructions'),
                    scan,
                ))

        updates = [u for u in updates if u is not None]
        return sorted(updates, key=lambda u: u.timestamp, reverse=True)

    def cancel_shipment(self, courier_order_id):
        try:
            data = self._request('POST', '/api/p/edit',
                                 json={'waybill': courier_order_id, 'cancellation': True})
            return data.get('success') is True
        except CourierAPIError as e:
            logger.error(f"Error cancelling Delhivery shipment {courier_order_id}: {e}")
            return False

    def generate_label(self, courier_order_id):
        try:
            data = self._request('GET', '/api/p/packing_slip',
                                 params={'wbn': courier_order_id, 'pdf': 'true'})
        except CourierAPIError as e:
            logger.error(f"Error generating Delhivery label for {courier_order_id}: {e}")
            raise CourierAPIError('Failed to generate shipping label', self.courier_code,
                                  status_code=e.status_code, raw_response=e.raw_response) from e
        return data.get('label_url') or ''

    def schedule_pickup(self, courier_order_id, pickup_date):
        try:
            data = self._request('POST', '/fm/request/new/', json={
                'pickup_date': pickup_date.date().isoformat(),
                'pickup_time': '14:00:00',
                'expected_package_count': 1,
                'waybill': courier_order_id,
            })
            return data.get('success') is True
        except CourierAPIError as e:
            logger.error(f"Error scheduling Delhivery pickup for {courier_order_id}: {e}")
            return False
