from __future__ import annotations

import pytest

from conftest import ALICE, BOB, P0, P1
from poap_ledger.errors import InvalidArgument
from poap_ledger.runtime.events import Published


def test_publish_counts_every_call(make_host, kv, access_mode, caller, sink):
    host = make_host(kv, access_mode=access_mode)
    assert host.total_projects_published() == 0
    host.publish(caller, P0)
    host.publish(caller, P0)
    host.publish(caller, P1)
    assert host.total_projects_published() == 3
    assert sink.of_type(Published) == [
        Published(caller=caller, project_id=P0),
        Published(caller=caller, project_id=P0),
        Published(caller=caller, project_id=P1),
    ]


def test_publish_writes_no_project_record(host):
    host.publish(ALICE, P0)
    assert host.get_project_token(P0) is None
    assert dict(host.state.projects.items()) == {}
    # Minting is unaffected by prior publication.
    assert host.mint(ALICE, P0, BOB, "ipfs://a") == 0
    assert host.total_projects_published() == 1


def test_publish_rejects_malformed_project_id(host):
    with pytest.raises(InvalidArgument):
        host.publish(ALICE, b"short")
    assert host.total_projects_published() == 0
