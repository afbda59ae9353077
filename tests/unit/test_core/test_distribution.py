# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for guest distribution classification."""
from __future__ import annotations

import pytest

from xenguest.core.distribution import OSVariant, classify, parse_distribution


def _descriptor(tmp_path, text):
    p = tmp_path / "xe-linux-distribution"
    p.write_text(text, encoding="utf-8")
    return p


@pytest.mark.unit
class TestClassify:
    def test_quoted_centos(self, tmp_path):
        p = _descriptor(tmp_path, 'os_distro="centos"\nos_majorver="7"\n')
        assert classify(p) is OSVariant.CENTOS

    def test_unquoted_centos_with_spaces(self, tmp_path):
        p = _descriptor(tmp_path, "os_majorver=7\n  os_distro =  centos  \n")
        assert classify(p) is OSVariant.CENTOS

    def test_ubuntu_is_other(self, tmp_path):
        p = _descriptor(tmp_path, 'os_distro="ubuntu"\n')
        assert classify(p) is OSVariant.OTHER

    def test_missing_file_is_other(self, tmp_path):
        assert classify(tmp_path / "nope") is OSVariant.OTHER

    def test_match_is_case_sensitive(self, tmp_path):
        p = _descriptor(tmp_path, 'os_distro="CentOS"\n')
        assert classify(p) is OSVariant.OTHER

    def test_distro_key_must_match_exactly(self, tmp_path):
        p = _descriptor(tmp_path, 'os_distro_alt="centos"\nname=centos\n')
        assert classify(p) is OSVariant.OTHER

    def test_any_centos_line_wins(self, tmp_path):
        p = _descriptor(tmp_path, 'os_distro="rhel"\nos_distro="centos"\n')
        assert classify(p) is OSVariant.CENTOS

    @pytest.mark.parametrize("line", ['os_distro="centos', 'os_distro=centos"'])
    def test_unbalanced_quote_is_trimmed(self, tmp_path, line):
        p = _descriptor(tmp_path, line + "\n")
        assert classify(p) is OSVariant.CENTOS

    def test_lines_without_equals_are_ignored(self, tmp_path):
        p = _descriptor(tmp_path, "garbage line\n\nos_distro=centos\n")
        assert classify(p) is OSVariant.CENTOS


@pytest.mark.unit
def test_parse_distribution_splits_on_first_equals():
    out = parse_distribution('os_uname="5.4.0=custom"\nos_name = "CentOS Linux 7"\n')
    assert out["os_uname"] == "5.4.0=custom"
    assert out["os_name"] == "CentOS Linux 7"


@pytest.mark.unit
def test_parse_distribution_trims_all_surrounding_quotes():
    out = parse_distribution('a=""v""\nb="centos\nc=centos"\nd= " x y " \n')
    assert out == {"a": "v", "b": "centos", "c": "centos", "d": "x y"}


@pytest.mark.unit
def test_variant_labels():
    assert OSVariant.CENTOS.label == "CentOS"
    assert OSVariant.OTHER.label == "other OS"
