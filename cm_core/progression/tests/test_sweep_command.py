from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.utils import timezone

from cm_core.members.constants import MemberStatus
from cm_core.members.models import Member

pytestmark = pytest.mark.django_db


def test_sweep_command_single_pass(tenant_id, newcomer_stages, make_member):
    due = make_member(stage_index=3)
    fresh = make_member(stage_index=3, first_name="Sam")
    last = make_member(stage_index=6, first_name="Lee")
    Member.objects.filter(id__in=[due.id, last.id]).update(
        last_stage_change_date=timezone.now() - timedelta(days=8)
    )

    out = StringIO()
    call_command("sweep_time_in_stage", "--tenant-id", str(tenant_id), stdout=out)

    due.refresh_from_db()
    fresh.refresh_from_db()
    last.refresh_from_db()
    assert due.current_stage_id == newcomer_stages[4].id
    assert fresh.current_stage_id == newcomer_stages[3].id
    # Serve has no time rule
    assert last.status == MemberStatus.ACTIVE
    assert "Members examined: 3" in out.getvalue()
    assert "Advanced: 1" in out.getvalue()


def test_sweep_command_respects_limit(tenant_id, newcomer_stages, make_member):
    for name in ("A", "B", "C"):
        make_member(stage_index=3, first_name=name)
    Member.objects.update(last_stage_change_date=timezone.now() - timedelta(days=8))

    out = StringIO()
    call_command("sweep_time_in_stage", "--limit", "2", stdout=out)

    assert "Members examined: 2" in out.getvalue()
    assert Member.objects.filter(current_stage=newcomer_stages[4]).count() == 2

    call_command("sweep_time_in_stage", "--limit", "2", stdout=StringIO())
    assert Member.objects.filter(current_stage=newcomer_stages[4]).count() == 3


@pytest.mark.parametrize("args", [["--tenant-id", "not-a-uuid"], ["--limit", "0"]])
def test_sweep_command_rejects_bad_arguments(args):
    with pytest.raises(CommandError):
        call_command("sweep_time_in_stage", *args, stdout=StringIO())
