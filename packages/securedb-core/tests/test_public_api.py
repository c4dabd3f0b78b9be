def test_api_exports_exist():
    from securedb.core import api

    for name in api.__all__:
        assert getattr(api, name) is not None, name

    assert callable(api.register_driver)
    assert callable(api.list_drivers)
    assert api.SecureConnector is not None
    assert api.Settings is not None


def test_top_level_reexports():
    from securedb.core import ConnectionResult, SecureConnector
    from securedb.core.connector import SecureConnector as Impl

    assert SecureConnector is Impl
    assert ConnectionResult.failure("connect").ok is False
