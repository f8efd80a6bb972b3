import logging
import math

import googlemaps
from flask import current_app

logger = logging.getLogger(__name__)


class MapsService:
    def __init__(self, api_key=None):
        self.api_key = api_key or current_app.config.get('GOOGLE_MAPS_API_KEY')
        self.client = None
        if self.api_key:
            try:
                self.client = googlemaps.Client(key=self.api_key)
            except ValueError as e:
                logger.warning(f"Failed to initialize Google Maps client: {e}")

    @staticmethod
    def _as_coordinates(location):
        if isinstance(location, tuple):
            return location
        if isinstance(location, str) and ',' in location:
            try:
                lat, lng = map(float, location.split(','))
                return lat, lng
            except ValueError:
                return None
        return None

    def calculate_distance(self, origin, destination):
        """
        Calculate distance and duration between two locations

        Locations are address strings, "lat,lng" strings or (lat, lng) tuples.
        """
        origin_coords = self._as_coordinates(origin)
        destination_coords = self._as_coordinates(destination)

        # Use Google Maps if available
        if self.client:
            try:
                origin_str = f"{origin[0]},{origin[1]}" if isinstance(origin, tuple) else origin
                dest_str = (f"{destination[0]},{destination[1]}"
                            if isinstance(destination, tuple) else destination)

                result = self.client.distance_matrix(
                    origins=[origin_str],
                    destinations=[dest_str],
                    mode="driving"
                )

                element = result['rows'][0]['elements'][0]
                if element['status'] == 'OK':
                    return {
                        'distance_km': round(element['distance']['value'] / 1000, 2),
                        'duration_minutes': round(element['duration']['value'] / 60),
                        'status': 'success'
                    }
            except (googlemaps.exceptions.ApiError, googlemaps.exceptions.TransportError,
                    googlemaps.exceptions.Timeout, KeyError, IndexError) as e:
                logger.warning(f"Google Maps API failed, falling back to Haversine: {e}")

        # Fallback to Haversine
        if origin_coords and destination_coords:
            return self.calculate_haversine(*origin_coords, *destination_coords)

        return {
            'distance_km': 0,
            'duration_minutes': 0,
            'status': 'error',
            'message': 'Could not calculate distance (Maps API missing and coordinates invalid)'
        }

    def calculate_haversine(self, lat1, lon1, lat2, lon2):
        R = 6371  # Earth radius in km
        dLat = math.radians(lat2 - lat1)
        dLon = math.radians(lon2 - lon1)
        a = math.sin(dLat/2) * math.sin(dLat/2) + \
            math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * \
            math.sin(dLon/2) * math.sin(dLon/2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))
        d = R * c

        # Road freight averages about 40km/h
        duration_minutes = int(d / 40 * 60)

        return {
            'distance_km': round(d, 2),
            'duration_minutes': duration_minutes,
            'status': 'success',
            'method': 'haversine'
        }

    def route_distance(self, pickup, delivery):
        """Human readable distance between two shipment addresses, or 'N/A'"""
        origin = f"{pickup.city}, {pickup.state} {pickup.pincode}, {pickup.country}"
        destination = f"{delivery.city}, {delivery.state} {delivery.pincode}, {delivery.country}"

        result = self.calculate_distance(origin, destination)
        if result['status'] != 'success':
            return 'N/A'
        return f"{result['distance_km']} km"
