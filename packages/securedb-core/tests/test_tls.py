from __future__ import annotations

import pytest

from securedb.core.flags import ClientFlag
from securedb.core.tls import TLSMaterial, resolve_tls_material, should_enforce_tls, tls_warnings


def test_existing_paths_are_kept(tls_files):
    m = resolve_tls_material(
        key=tls_files["key"],
        cert=tls_files["cert"],
        ca_cert=tls_files["ca"],
        ca_dir=tls_files["capath"],
        cipher_list="ECDHE-RSA-AES256-GCM-SHA384",
    )
    assert m == TLSMaterial(
        key=tls_files["key"],
        cert=tls_files["cert"],
        ca_cert=tls_files["ca"],
        ca_dir=tls_files["capath"],
        cipher_list="ECDHE-RSA-AES256-GCM-SHA384",
    )
    assert m.is_present()


def test_missing_paths_become_absent(tmp_path):
    m = resolve_tls_material(
        key=str(tmp_path / "nope.key"),
        cert=str(tmp_path / "nope.crt"),
        ca_cert=str(tmp_path / "nope-ca.crt"),
        ca_dir=str(tmp_path / "nope-dir"),
    )
    assert m == TLSMaterial()
    assert not m.is_present()


def test_kind_mismatch_is_absent(tls_files):
    # a directory is not a key file, a file is not a CA directory
    m = resolve_tls_material(key=tls_files["capath"], ca_dir=tls_files["ca"])
    assert m.key is None
    assert m.ca_dir is None


@pytest.mark.parametrize("cipher", [None, False, "", "   ", "0", "false"])
def test_falsy_cipher_is_absent(cipher):
    assert resolve_tls_material(cipher_list=cipher).cipher_list is None


def test_undefined_settings_give_empty_material(settings):
    assert TLSMaterial.from_settings(settings) == TLSMaterial()


@pytest.mark.parametrize(
    "flags, material, expected",
    [
        (ClientFlag.SSL, TLSMaterial(cipher_list="AES256-SHA"), True),
        (ClientFlag.SSL | ClientFlag.COMPRESS, TLSMaterial(ca_cert="/x/ca.pem"), True),
        (ClientFlag.SSL, TLSMaterial(), False),
        (ClientFlag.COMPRESS, TLSMaterial(cipher_list="AES256-SHA"), False),
        (ClientFlag.NONE, TLSMaterial(), False),
    ],
)
def test_enforcement_needs_flag_and_material(flags, material, expected):
    assert should_enforce_tls(flags, material) is expected


def test_ssl_flag_with_only_ca(tls_files):
    m = resolve_tls_material(ca_cert=tls_files["ca"])
    assert should_enforce_tls(2048, m)
    assert m.ssl_args() == (None, None, tls_files["ca"], None, None)


def test_half_configured_warnings():
    assert tls_warnings(ClientFlag.SSL, TLSMaterial())
    assert tls_warnings(0, TLSMaterial(cipher_list="AES256-SHA"))
    assert tls_warnings(ClientFlag.SSL, TLSMaterial(cipher_list="AES256-SHA")) == []
    assert tls_warnings(0, TLSMaterial()) == []
