from __future__ import annotations

import types

from oci_netreport.util.pagination import list_all, paginate


def test_paginate_yields_all_items_and_pages_in_order() -> None:
    calls = []
    pages = {
        None: (["a", "b"], "next"),
        "next": (["c"], None),
    }

    def fetch(page):
        calls.append(page)
        return pages[page]

    items = list(paginate(fetch))
    assert items == ["a", "b", "c"]
    assert calls == [None, "next"]


def test_list_all_passes_page_token_only_after_first_call() -> None:
    calls = []

    def list_things(compartment_id, **kwargs):
        calls.append((compartment_id, dict(kwargs)))
        if "page" not in kwargs:
            return types.SimpleNamespace(data=[1, 2], headers={"opc-next-page": "tok"})
        return types.SimpleNamespace(data=[3], headers={})

    assert list_all(list_things, "comp", vcn_id="v") == [1, 2, 3]
    assert calls == [("comp", {"vcn_id": "v"}), ("comp", {"vcn_id": "v", "page": "tok"})]


def test_list_all_tolerates_missing_data_and_headers() -> None:
    assert list_all(lambda: types.SimpleNamespace(data=None, headers=None)) == []
