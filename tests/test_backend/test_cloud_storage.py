"""Tests for cloud storage service."""

import pytest
import os
import requests
from unittest.mock import Mock, patch
from backend.services.cloud_storage import (
    CloudStorageService, StorageNotConfiguredError, get_cloud_storage, reset_cloud_storage,
)


@pytest.fixture
def mock_env():
    """Set up mock environment variables."""
    env_vars = {
        'CLOUD_STORAGE_PROVIDER': 'gcs',
        'CLOUD_STORAGE_ACCESS_KEY': 'test_key',
        'CLOUD_STORAGE_SECRET_KEY': 'test_secret',
        'CLOUD_STORAGE_BUCKET': 'test-bucket',
        'CLOUD_STORAGE_PROJECT': 'survey-project',
    }
    with patch.dict(os.environ, env_vars):
        os.environ.pop('CLOUD_STORAGE_PUBLIC_URL', None)
        yield env_vars


@pytest.fixture
def mock_driver():
    """Create a mock libcloud driver."""
    driver = Mock()
    container = Mock()
    container.name = 'test-bucket'
    driver.get_container.return_value = container

    def upload(iterator, container, object_name, extra):
        obj = Mock()
        obj.name = object_name
        return obj
    driver.upload_object_via_stream.side_effect = upload
    return driver


@pytest.fixture(autouse=True)
def fresh_singleton():
    reset_cloud_storage()
    yield
    reset_cloud_storage()


@patch('backend.services.cloud_storage.get_driver')
def test_cloud_storage_initialization(mock_get_driver, mock_env, mock_driver):
    """Test cloud storage service initialization."""
    mock_get_driver.return_value = Mock(return_value=mock_driver)

    service = CloudStorageService()

    assert service.provider_name == 'gcs'
    assert service.bucket_name == 'test-bucket'
    assert service.public_base_url == 'https://storage.googleapis.com/test-bucket'
    mock_get_driver.return_value.assert_called_once_with(
        key='test_key', secret='test_secret', project='survey-project')
    mock_driver.get_container.assert_called_once_with(container_name='test-bucket')


@patch('backend.services.cloud_storage.get_driver')
def test_s3_provider_uses_region(mock_get_driver, mock_env, mock_driver):
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    with patch.dict(os.environ, {'CLOUD_STORAGE_PROVIDER': 's3', 'CLOUD_STORAGE_REGION': 'ap-south-1',
                                 'CLOUD_STORAGE_PUBLIC_URL': 'https://cdn.example.com/'}):
        service = CloudStorageService()

    mock_get_driver.return_value.assert_called_once_with(
        key='test_key', secret='test_secret', region='ap-south-1')
    assert service.public_url('uploads/a.jpg') == 'https://cdn.example.com/uploads/a.jpg'


def test_missing_configuration(mock_env):
    with patch.dict(os.environ, {'CLOUD_STORAGE_BUCKET': ''}):
        with pytest.raises(StorageNotConfiguredError):
            CloudStorageService()


@patch('backend.services.cloud_storage.get_driver')
def test_unsupported_provider(mock_get_driver, mock_env):
    with patch.dict(os.environ, {'CLOUD_STORAGE_PROVIDER': 'ftp'}):
        with pytest.raises(ValueError, match='Unsupported provider: ftp'):
            CloudStorageService()


@patch('backend.services.cloud_storage.get_driver')
def test_upload_file(mock_get_driver, mock_env, mock_driver):
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    service = CloudStorageService()

    url = service.upload_file(b'image-bytes', 'front photo.jpg', folder='survey-images')

    assert url.startswith('https://storage.googleapis.com/test-bucket/survey-images/')
    assert url.endswith('_front_photo.jpg')
    kwargs = mock_driver.upload_object_via_stream.call_args.kwargs
    assert list(kwargs['iterator']) == [b'image-bytes']
    assert kwargs['extra'] == {'content_type': 'image/jpeg'}
    assert url.endswith(kwargs['object_name'])

    args, perm_kwargs = mock_driver.ex_set_permissions.call_args
    assert args == ('test-bucket', kwargs['object_name'])
    assert perm_kwargs['entity'] == 'allUsers'


@patch('backend.services.cloud_storage.get_driver')
def test_upload_names_are_unique(mock_get_driver, mock_env, mock_driver):
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    service = CloudStorageService()

    urls = {service.upload_file(b'x', 'deed.pdf', folder='documents') for _ in range(5)}
    assert len(urls) == 5


@patch('backend.services.cloud_storage.get_driver')
def test_make_public_failure_still_returns_url(mock_get_driver, mock_env, mock_driver):
    mock_driver.ex_set_permissions.side_effect = Exception('permission denied')
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    service = CloudStorageService()

    url = service.upload_file(b'x', 'deed.pdf', 'application/pdf', folder='documents')
    assert '/documents/' in url


@pytest.mark.parametrize('transient', [
    requests.exceptions.ConnectionError('connection reset by peer'),
    requests.exceptions.ReadTimeout('read timed out'),
    TimeoutError('socket timeout'),
])
@patch('backend.services.cloud_storage.get_driver')
def test_upload_retries_transport_errors(mock_get_driver, mock_env, mock_driver, transient):
    uploaded = Mock()
    uploaded.name = 'survey-images/x.png'
    mock_driver.upload_object_via_stream.side_effect = [transient, uploaded]
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    service = CloudStorageService()

    service.upload_file(b'x', 'x.png', folder='survey-images')
    assert mock_driver.upload_object_via_stream.call_count == 2


@patch('backend.services.cloud_storage.get_driver')
def test_upload_does_not_retry_other_errors(mock_get_driver, mock_env, mock_driver):
    mock_driver.upload_object_via_stream.side_effect = RuntimeError('bucket gone')
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    service = CloudStorageService()

    with pytest.raises(RuntimeError, match='bucket gone'):
        service.upload_file(b'x', 'x.png')
    assert mock_driver.upload_object_via_stream.call_count == 1


@patch('backend.services.cloud_storage.get_driver')
def test_upload_path_keeps_filename(mock_get_driver, mock_env, mock_driver, tmp_path):
    mock_get_driver.return_value = Mock(return_value=mock_driver)
    service = CloudStorageService()
    legacy = tmp_path / '1699999999999-front.png'
    legacy.write_bytes(b'png')

    url = service.upload_path(legacy)

    assert url == 'https://storage.googleapis.com/test-bucket/uploads/1699999999999-front.png'
    assert mock_driver.upload_object_via_stream.call_args.kwargs['extra'] == {'content_type': 'image/png'}

    with pytest.raises(FileNotFoundError):
        service.upload_path(tmp_path / 'missing.png')


@patch('backend.services.cloud_storage.get_driver')
def test_get_cloud_storage_is_cached(mock_get_driver, mock_env, mock_driver):
    mock_get_driver.return_value = Mock(return_value=mock_driver)

    first = get_cloud_storage()
    assert get_cloud_storage() is first

    reset_cloud_storage()
    assert get_cloud_storage() is not first


def test_get_cloud_storage_unconfigured():
    with patch.dict(os.environ, {'CLOUD_STORAGE_ACCESS_KEY': '', 'CLOUD_STORAGE_SECRET_KEY': '',
                                 'CLOUD_STORAGE_BUCKET': ''}):
        with pytest.raises(StorageNotConfiguredError):
            get_cloud_storage()
