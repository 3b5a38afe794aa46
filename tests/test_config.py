import pytest

from scimkit.config import ServiceProviderConfig


@pytest.mark.parametrize(
    "bulk",
    (
        {"supported": True},
        {"supported": True, "max_operations": 10},
        {"supported": True, "max_payload_size": 4242},
    ),
)
def test_value_error_is_raised_if_limits_not_specified_for_bulk_operations(bulk):
    with pytest.raises(
        ValueError,
        match=(
            "'max_payload_size' and 'max_operations' must be specified "
            "if bulk operations are supported"
        ),
    ):
        ServiceProviderConfig.create(bulk=bulk)


def test_options_are_not_supported_by_default():
    config = ServiceProviderConfig.create()

    assert not config.patch.supported
    assert not config.bulk.supported
    assert config.bulk.max_operations is None
    assert config.bulk.max_payload_size is None


def test_bulk_limits_are_kept():
    config = ServiceProviderConfig.create(
        bulk={"supported": True, "max_operations": 10, "max_payload_size": 4242}
    )

    assert config.bulk.max_operations == 10
    assert config.bulk.max_payload_size == 4242


def test_config_can_not_be_modified():
    config = ServiceProviderConfig.create(patch={"supported": True})

    with pytest.raises(AttributeError):
        config.patch = None

    with pytest.raises(AttributeError):
        config.patch.supported = False
