from unittest.mock import Mock

import pytest

from kioskinstall.domain.project import GeoLocation
from kioskinstall.services.geolocation_service import (
    DeviceLocationProvider,
    GeolocationAcquirer,
    GeolocationError,
    GeolocationErrorKind,
)


class TestDeviceLocationProvider:

    def test_reading_becomes_location(self):
        provider = DeviceLocationProvider.from_payload({'latitude': 34.052235, 'longitude': -118.243683})
        location = provider.current_position()
        assert location == GeoLocation(lat=34.052235, lng=-118.243683)

    @pytest.mark.parametrize('code', ['PERMISSION_DENIED', 'UNAVAILABLE', 'TIMEOUT'])
    def test_device_error_codes_map_to_kinds(self, code):
        provider = DeviceLocationProvider.from_payload({'error': code})
        with pytest.raises(GeolocationError) as excinfo:
            provider.current_position()
        assert excinfo.value.kind == GeolocationErrorKind(code)

    def test_permission_denied_message(self):
        with pytest.raises(GeolocationError) as excinfo:
            DeviceLocationProvider(error='PERMISSION_DENIED').current_position()
        assert excinfo.value.message == "Unable to retrieve location. Please enable GPS."

    def test_unknown_error_code_is_unavailable(self):
        with pytest.raises(GeolocationError) as excinfo:
            DeviceLocationProvider(error='POSITION_LOST').current_position()
        assert excinfo.value.kind is GeolocationErrorKind.UNAVAILABLE

    def test_missing_coordinates_are_unavailable(self):
        with pytest.raises(GeolocationError) as excinfo:
            DeviceLocationProvider(latitude=12.5).current_position()
        assert excinfo.value.kind is GeolocationErrorKind.UNAVAILABLE

    def test_out_of_range_coordinates_are_unavailable(self):
        with pytest.raises(GeolocationError) as excinfo:
            DeviceLocationProvider(latitude=123.0, longitude=10.0).current_position()
        assert excinfo.value.kind is GeolocationErrorKind.UNAVAILABLE


class TestGeolocationAcquirer:

    def test_requests_high_accuracy_once(self):
        provider = Mock()
        provider.current_position.return_value = GeoLocation(lat=1.0, lng=2.0)
        location = GeolocationAcquirer(provider).acquire()
        assert location.lat == 1.0
        provider.current_position.assert_called_once_with(high_accuracy=True)

    def test_failure_is_not_retried(self):
        provider = Mock()
        provider.current_position.side_effect = GeolocationError(GeolocationErrorKind.TIMEOUT)
        with pytest.raises(GeolocationError):
            GeolocationAcquirer(provider).acquire()
        assert provider.current_position.call_count == 1
