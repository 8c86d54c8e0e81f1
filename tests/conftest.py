import pytest

from app.upload.models import KML_MIME_TYPE, UploadCredentials, UploadRequest

PARCEL_URL = "https://store/bucket/input_kml_files/parcel.kml?sig=abc123"

KML_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Placemark><name>Parcel</name><Point><coordinates>-74.006,40.7128,0</coordinates></Point></Placemark>
</kml>
"""


@pytest.fixture()
def kml_bytes() -> bytes:
    return KML_DOCUMENT


@pytest.fixture()
def parcel_request() -> UploadRequest:
    """A 2 MiB KML file, matching the canonical upload scenario."""
    content = KML_DOCUMENT.ljust(2 * 1024 * 1024, b" ")
    return UploadRequest.from_bytes("parcel.kml", content, mime_type=KML_MIME_TYPE)


@pytest.fixture()
def parcel_credentials() -> UploadCredentials:
    return UploadCredentials(
        transfer_url=PARCEL_URL,
        file_key="input_kml_files/parcel.kml",
        expires_in_seconds=3600,
    )
