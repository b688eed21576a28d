"""
dedupe/tests.py

Covers:
  - identity            : phone / e-mail domain / company name normalisation
  - check_duplicate     : priority order and in-batch key threading
  - find_duplicate_groups : union-find clustering, primary choice, determinism
  - merge_contact_fields  : fill-empty-only merge
  - apply_dedupe / preview_dedupe : orchestration, partial runs, audit rows
  - fix_contact_encoding  : mis-decoded umlaut repair
  - archive / restore   : snapshot round trip, conflicts, listing
  - views               : HTTP status mapping
  - management commands : dedupe_contacts, restore_contact, fix_contact_encoding
"""

import io
import random
import uuid
from datetime import datetime, timezone as dt_timezone
from types import SimpleNamespace
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse

from candidates.models import Candidate, CompanyEmailDraft
from contacts.models import (
    CallLog,
    Contact,
    ContactList,
    ContactNote,
    ContactPerson,
    ListMember,
    UserContactSetting,
)
from dedupe.archive import archive_contact, list_archived, restore_archived_contact
from dedupe.classifier import IdentityKeys, ImportCandidate, check_duplicate
from dedupe.clustering import DuplicateGroup, find_duplicate_groups
from dedupe.encoding import fix_contact_encoding, repair_mojibake
from dedupe.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from dedupe.identity import (
    email_domain,
    is_public_domain,
    matchable_domain,
    normalized_name,
    phone_digits,
)
from dedupe.merge import merge_contact_fields
from dedupe.models import ArchivedContact, CleanupRun
from dedupe.permissions import is_cleanup_allowed
from dedupe.relations import repoint_relation
from dedupe.services import apply_dedupe, preview_dedupe
from messaging.models import EmailThread
from teams.models import Profile, Team
from vacancies.models import Vacancy

User = get_user_model()

OPS_EMAIL = "ops@example.ch"


# ── Helpers ────────────────────────────────────────────────────────────────────

def _dt(year, month=1, day=1) -> datetime:
    return datetime(year, month, day, 9, 0, tzinfo=dt_timezone.utc)


def _record(record_id, company_name, created_at=None, **fields) -> SimpleNamespace:
    """In-memory stand-in for a Contact, for the pure clustering/merge tests."""
    data = dict(
        id=record_id,
        company_name=company_name,
        created_at=created_at,
        contact_name=None,
        phone=None,
        email=None,
        street=None,
        city=None,
        canton=None,
        postal_code=None,
    )
    data.update(fields)
    return SimpleNamespace(**data)


def _make_user(email=OPS_EMAIL, username=None) -> User:
    return User.objects.create_user(
        username=username or email.split("@")[0],
        email=email,
        password="secret-pass-123",
    )


def _make_contact(company_name="Muster AG", created_at=None, **kwargs) -> Contact:
    return Contact.objects.create(
        company_name=company_name,
        created_at=created_at or _dt(2024),
        **kwargs,
    )


# ── Identity normaliser ────────────────────────────────────────────────────────

class IdentityTests(TestCase):
    def test_phone_digits_strips_formatting(self):
        self.assertEqual(phone_digits("+41 (0)79 123-45-67"), "410791234567")

    def test_phone_digits_too_short_is_none(self):
        self.assertIsNone(phone_digits("12 34"))
        self.assertIsNone(phone_digits(None))

    def test_trunk_prefix_and_international_form_differ(self):
        self.assertNotEqual(phone_digits("079 123 45 67"), phone_digits("+41 79 123 45 67"))

    def test_email_domain_lowercases(self):
        self.assertEqual(email_domain("Jobs@Muster-AG.CH"), "muster-ag.ch")

    def test_email_domain_without_at_is_none(self):
        self.assertIsNone(email_domain("not-an-email"))
        self.assertIsNone(email_domain(""))

    def test_normalized_name_collapses_whitespace(self):
        self.assertEqual(normalized_name("  Müller   GmbH "), "müller gmbh")

    def test_normalized_name_too_short_is_none(self):
        self.assertIsNone(normalized_name(" A "))

    def test_public_domains(self):
        self.assertTrue(is_public_domain("GMAIL.com"))
        self.assertTrue(is_public_domain("bluewin.ch"))
        self.assertFalse(is_public_domain("muster.ch"))
        self.assertIsNone(matchable_domain("someone@gmail.com"))
        self.assertEqual(matchable_domain("hr@muster.ch"), "muster.ch")


# ── Duplicate classifier ───────────────────────────────────────────────────────

class CheckDuplicateTests(TestCase):
    def setUp(self):
        self.keys = IdentityKeys().remember(
            _record("a", "Alpha AG", phone="044 111 22 33", email="hr@alpha.ch", external_id="G-1")
        )

    def test_no_match(self):
        check = check_duplicate(ImportCandidate("Beta AG", phone="044 999 88 77"), self.keys)
        self.assertFalse(check.is_duplicate)
        self.assertIsNone(check.reason)

    def test_external_id_has_highest_priority(self):
        check = check_duplicate(
            ImportCandidate("Alpha AG", phone="0441112233", external_id="G-1"), self.keys
        )
        self.assertEqual(check.reason, "graph_id")

    def test_phone_before_domain_and_name(self):
        check = check_duplicate(
            ImportCandidate("Alpha AG", phone="044-111-22-33", email="x@alpha.ch"), self.keys
        )
        self.assertEqual(check.reason, "phone")

    def test_domain_before_name(self):
        check = check_duplicate(ImportCandidate("Alpha AG", email="ceo@ALPHA.ch"), self.keys)
        self.assertEqual(check.reason, "email_domain")

    def test_name_match(self):
        check = check_duplicate(ImportCandidate("alpha   ag"), self.keys)
        self.assertEqual(check.to_dict(), {"is_duplicate": True, "reason": "name"})

    def test_public_domain_never_matches(self):
        keys = IdentityKeys().remember(_record("a", "Alpha AG", email="alpha@gmail.com"))
        check = check_duplicate(ImportCandidate("Beta AG", email="beta@gmail.com"), keys)
        self.assertFalse(check.is_duplicate)

    def test_check_does_not_mutate_keys(self):
        check_duplicate(ImportCandidate("Gamma AG", phone="0449998877"), self.keys)
        self.assertNotIn("0449998877", self.keys.phones)

    def test_remember_threads_batch_state(self):
        keys = IdentityKeys()
        first = ImportCandidate("Gamma AG", phone="0449998877")
        self.assertFalse(check_duplicate(first, keys).is_duplicate)
        keys = keys.remember(first)
        second = ImportCandidate("Gamma Holding", phone="+0449998877")
        self.assertEqual(check_duplicate(second, keys).reason, "phone")


# ── Cluster builder ────────────────────────────────────────────────────────────

class FindDuplicateGroupsTests(TestCase):
    def test_name_variants_cluster_with_older_record_as_primary(self):
        older = _record("a", "Müller GmbH", _dt(2024, 1))
        newer = _record("b", "müller  gmbh", _dt(2024, 2))
        groups = find_duplicate_groups([newer, older])

        self.assertEqual(len(groups), 1)
        group = groups[0]
        self.assertEqual(group.primary_id, "a")
        self.assertEqual(group.duplicate_ids, ["b"])
        self.assertEqual(group.match_reason, "name")

    def test_most_complete_record_wins_over_age(self):
        older = _record("a", "Alpha AG", _dt(2023))
        richer = _record("b", "Alpha AG", _dt(2024), city="Zürich", street="Bahnhofstr. 1")
        group = find_duplicate_groups([older, richer])[0]
        self.assertEqual(group.primary_id, "b")

    def test_missing_created_at_sorts_last(self):
        undated = _record("a", "Alpha AG")
        dated = _record("b", "Alpha AG", _dt(2024))
        group = find_duplicate_groups([undated, dated])[0]
        self.assertEqual(group.primary_id, "b")

    def test_transitive_chain_forms_one_cluster(self):
        a = _record("a", "Alpha AG", _dt(2024, 1), phone="044 111 22 33")
        b = _record("b", "Beta Personal", _dt(2024, 2), phone="0441112233")
        c = _record("c", "beta personal", _dt(2024, 3))
        groups = find_duplicate_groups([c, b, a])

        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].primary_id, "a")
        self.assertEqual(groups[0].duplicate_ids, ["b", "c"])
        # phone outranks name among the uniting signals
        self.assertEqual(groups[0].match_reason, "phone")

    def test_public_email_domain_never_clusters(self):
        a = _record("a", "Alpha AG", _dt(2024, 1), email="alpha@gmail.com")
        b = _record("b", "Beta AG", _dt(2024, 2), email="beta@gmail.com")
        self.assertEqual(find_duplicate_groups([a, b]), [])

    def test_company_domain_clusters(self):
        a = _record("a", "Alpha AG", _dt(2024, 1), email="hr@alpha.ch")
        b = _record("b", "Alpha Services", _dt(2024, 2), email="jobs@alpha.ch")
        self.assertEqual(find_duplicate_groups([a, b])[0].match_reason, "email_domain")

    def test_singletons_are_not_groups(self):
        self.assertEqual(find_duplicate_groups([_record("a", "Alpha AG", _dt(2024))]), [])

    def test_clusters_ordered_by_earliest_member(self):
        records = [
            _record("x1", "Zeta AG", _dt(2020)),
            _record("x2", "Zeta AG", _dt(2021)),
            _record("y1", "Alpha AG", _dt(2022)),
            _record("y2", "Alpha AG", _dt(2023)),
        ]
        groups = find_duplicate_groups(list(reversed(records)))
        self.assertEqual([g.primary_id for g in groups], ["x1", "y1"])

    def test_output_independent_of_input_order(self):
        records = [
            _record(f"r{i}", name, _dt(2024, 1, i + 1), phone=phone)
            for i, (name, phone) in enumerate([
                ("Alpha AG", "0441112233"),
                ("Alpha Holding", "0441112233"),
                ("Beta AG", None),
                ("beta ag", None),
                ("Gamma AG", "0449998877"),
                ("Delta AG", "0449998877"),
                ("Epsilon AG", None),
            ])
        ]
        expected = [g.to_example() for g in find_duplicate_groups(records)]
        rng = random.Random(7)
        for _ in range(5):
            shuffled = records[:]
            rng.shuffle(shuffled)
            self.assertEqual([g.to_example() for g in find_duplicate_groups(shuffled)], expected)


# ── Field merge resolver ───────────────────────────────────────────────────────

class MergeContactFieldsTests(TestCase):
    def test_fills_only_empty_fields(self):
        primary = _record("a", "Alpha AG", city="Zürich", email="")
        duplicate = _record("b", "Alpha AG", city="Bern", email="hr@alpha.ch", canton="ZH")
        patch_ = merge_contact_fields(primary, duplicate)
        self.assertEqual(patch_, {"email": "hr@alpha.ch", "canton": "ZH"})

    def test_phone_is_never_merged(self):
        primary = _record("a", "Alpha AG")
        duplicate = _record("b", "Alpha AG", phone="0441112233")
        self.assertEqual(merge_contact_fields(primary, duplicate), {})

    def test_blank_duplicate_values_are_ignored(self):
        primary = _record("a", "Alpha AG")
        duplicate = _record("b", "Alpha AG", street="   ")
        self.assertEqual(merge_contact_fields(primary, duplicate), {})


# ── Authorisation gate ─────────────────────────────────────────────────────────

@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class CleanupPermissionTests(TestCase):
    def test_listed_email_is_allowed_case_insensitively(self):
        self.assertTrue(is_cleanup_allowed(_make_user(email="OPS@example.ch", username="ops")))

    def test_other_user_is_denied(self):
        self.assertFalse(is_cleanup_allowed(_make_user(email="intern@example.ch")))

    def test_anonymous_is_denied(self):
        self.assertFalse(is_cleanup_allowed(None))


# ── Merge orchestration ────────────────────────────────────────────────────────

@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class ApplyDedupeTests(TestCase):
    def setUp(self):
        self.user = _make_user()
        self.team = Team.objects.create(name="Zürich")
        self.primary = _make_contact(
            "Alpha AG", _dt(2023), team=self.team, phone="044 111 22 33", city="Zürich",
        )
        self.duplicate = _make_contact(
            "alpha ag", _dt(2024), team=self.team, city="Bern", street="Seestrasse 5",
        )

    def test_merges_duplicate_into_primary(self):
        ContactNote.objects.create(contact=self.duplicate, body="Called, wants 2 welders")
        ContactPerson.objects.create(contact=self.duplicate, first_name="Anna", last_name="Meier")
        Vacancy.objects.create(contact=self.duplicate, title="Welder")
        CallLog.objects.create(contact=self.duplicate, user=self.user, outcome=CallLog.Outcome.REACHED)

        result = apply_dedupe(self.team.pk, user=self.user)

        self.assertEqual(result["status"], "completed")
        self.assertEqual(result["group_count"], 1)
        self.assertEqual(result["archived_count"], 1)
        self.assertEqual(result["errors"], [])
        self.assertEqual(result["merged_by_relation_type"]["contact_notes"], 1)
        self.assertEqual(result["merged_by_relation_type"]["contact_persons"], 1)
        self.assertEqual(result["merged_by_relation_type"]["vacancies"], 1)
        self.assertEqual(result["merged_by_relation_type"]["call_logs"], 1)

        self.assertFalse(Contact.objects.filter(pk=self.duplicate.pk).exists())
        self.primary.refresh_from_db()
        self.assertEqual(self.primary.city, "Zürich")
        self.assertEqual(self.primary.street, "Seestrasse 5")
        self.assertEqual(self.primary.phone, "044 111 22 33")
        self.assertEqual(self.primary.contact_notes.count(), 1)
        self.assertEqual(self.primary.vacancies.count(), 1)

    def test_records_archive_and_cleanup_run(self):
        result = apply_dedupe(self.team.pk, user=self.user)

        run = CleanupRun.objects.get()
        self.assertEqual(str(run.id), result["run_id"])
        self.assertEqual(run.status, CleanupRun.Status.COMPLETED)
        self.assertEqual(run.executed_by, self.user)
        self.assertEqual(run.team, self.team)
        self.assertEqual(run.summary["archived_count"], 1)

        archive = ArchivedContact.objects.get()
        self.assertEqual(archive.original_contact_id, self.duplicate.pk)
        self.assertEqual(archive.merged_into_contact_id, self.primary.pk)
        self.assertEqual(str(archive.run_id), result["run_id"])
        self.assertEqual(archive.reason, ArchivedContact.Reason.DEDUPE_MERGE)
        self.assertEqual(archive.contact_snapshot["company_name"], "alpha ag")

    def test_fill_empty_only_holds_across_several_duplicates(self):
        _make_contact("Alpha AG", _dt(2024, 3), team=self.team, contact_name="Beat")
        self.primary.street = "Bahnhofstrasse 1"
        self.primary.save()
        self.duplicate.contact_name = "Anna"
        self.duplicate.save()

        apply_dedupe(self.team.pk, user=self.user)

        self.primary.refresh_from_db()
        self.assertEqual(self.primary.contact_name, "Anna")
        self.assertEqual(Contact.objects.filter(team=self.team).count(), 1)

    def test_conflict_aware_relations_merge_into_primary_rows(self):
        recruiter = _make_user(email="recruiter@example.ch")
        UserContactSetting.objects.create(
            user=recruiter, contact=self.primary, status="open", updated_at=_dt(2024, 1),
        )
        UserContactSetting.objects.create(
            user=recruiter, contact=self.duplicate, status="hot",
            follow_up_note="Call Monday", updated_at=_dt(2024, 3),
        )
        UserContactSetting.objects.create(user=self.user, contact=self.duplicate, status="closed")

        shared = ContactList.objects.create(name="Construction", team=self.team)
        own = ContactList.objects.create(name="Logistics", team=self.team)
        ListMember.objects.create(contact_list=shared, contact=self.primary)
        ListMember.objects.create(contact_list=shared, contact=self.duplicate)
        ListMember.objects.create(contact_list=own, contact=self.duplicate)

        candidate = Candidate.objects.create(first_name="Ion", last_name="Pop", full_name="Ion Pop")
        CompanyEmailDraft.objects.create(
            candidate=candidate, company=self.primary,
            standard_subject="Old standard", standard_updated_at=_dt(2024, 5),
            best_subject="Old best", best_updated_at=_dt(2024, 1),
        )
        CompanyEmailDraft.objects.create(
            candidate=candidate, company=self.duplicate,
            standard_subject="Dup standard", standard_updated_at=_dt(2024, 2),
            best_subject="New best", best_updated_at=_dt(2024, 6),
            best_research_confidence=0.8,
        )

        result = apply_dedupe(self.team.pk, user=self.user)

        self.assertEqual(result["status"], "completed")
        self.assertEqual(result["merged_by_relation_type"]["user_contact_settings"], 2)
        self.assertEqual(result["merged_by_relation_type"]["list_members"], 2)
        self.assertEqual(result["merged_by_relation_type"]["email_drafts"], 1)

        setting = UserContactSetting.objects.get(user=recruiter, contact=self.primary)
        self.assertEqual(setting.status, "hot")
        self.assertEqual(setting.follow_up_note, "Call Monday")
        self.assertEqual(setting.updated_at, _dt(2024, 3))
        self.assertTrue(UserContactSetting.objects.filter(user=self.user, contact=self.primary).exists())

        self.assertEqual(shared.members.count(), 1)
        self.assertEqual(own.members.get().contact_id, self.primary.pk)

        draft = CompanyEmailDraft.objects.get()
        self.assertEqual(draft.company_id, self.primary.pk)
        self.assertEqual(draft.standard_subject, "Old standard")
        self.assertEqual(draft.best_subject, "New best")
        self.assertEqual(draft.best_research_confidence, 0.8)

    def test_messaging_links_are_repointed(self):
        thread = EmailThread.objects.create(
            owner=self.user, external_id="conv-1", linked_contact=self.duplicate,
        )
        apply_dedupe(self.team.pk, user=self.user)
        thread.refresh_from_db()
        self.assertEqual(thread.linked_contact_id, self.primary.pk)

    def test_relation_failure_yields_partial_run(self):
        Vacancy.objects.create(contact=self.duplicate, title="Welder")
        ContactNote.objects.create(contact=self.duplicate, body="note")

        def flaky(relation, duplicate_id, primary_id):
            if relation.key == "vacancies":
                raise DatabaseError("simulated failure")
            return repoint_relation(relation, duplicate_id, primary_id)

        with patch("dedupe.services.repoint_relation", side_effect=flaky):
            result = apply_dedupe(self.team.pk, user=self.user)

        self.assertEqual(result["status"], "partial")
        self.assertEqual(len(result["errors"]), 1)
        self.assertIn("vacancies", result["errors"][0])
        self.assertEqual(result["archived_count"], 1)
        self.assertEqual(result["merged_by_relation_type"]["contact_notes"], 1)
        self.assertFalse(Contact.objects.filter(pk=self.duplicate.pk).exists())
        self.assertEqual(CleanupRun.objects.get().status, CleanupRun.Status.PARTIAL)
        # The lost vacancy is still recoverable from the archive.
        archive = ArchivedContact.objects.get()
        self.assertEqual(len(archive.related_snapshot["vacancies"]), 1)

    def test_archive_failure_leaves_duplicate_untouched(self):
        with patch(
            "dedupe.services.archive_contact",
            side_effect=PersistenceError("archive table unavailable"),
        ):
            result = apply_dedupe(self.team.pk, user=self.user)

        self.assertEqual(result["status"], "partial")
        self.assertEqual(result["archived_count"], 0)
        self.assertTrue(Contact.objects.filter(pk=self.duplicate.pk).exists())
        self.primary.refresh_from_db()
        self.assertIsNone(self.primary.street)

    def _groups_with_vanished_contact(self, vanished_primary=False):
        """Clusters as found before a contact was deleted by someone else."""
        gone = uuid.uuid4()
        other_primary = _make_contact("Gamma AG", _dt(2023), team=self.team)
        other_duplicate = _make_contact("gamma ag", _dt(2024), team=self.team)
        if vanished_primary:
            first = DuplicateGroup(gone, "Alpha AG", [self.duplicate.pk], ["alpha ag"])
        else:
            first = DuplicateGroup(self.primary.pk, "Alpha AG", [gone, self.duplicate.pk], ["alpha", "alpha ag"])
        later = DuplicateGroup(other_primary.pk, "Gamma AG", [other_duplicate.pk], ["gamma ag"])
        return gone, first, later

    def test_vanished_duplicate_is_skipped_and_later_groups_merge(self):
        gone, first, later = self._groups_with_vanished_contact()

        with patch("dedupe.services.find_duplicate_groups", return_value=[first, later]):
            result = apply_dedupe(self.team.pk, user=self.user)

        self.assertEqual(result["status"], "partial")
        self.assertEqual(len(result["errors"]), 1)
        self.assertIn(str(gone), result["errors"][0])
        self.assertEqual(result["archived_count"], 2)
        self.assertFalse(ArchivedContact.objects.filter(original_contact_id=gone).exists())
        self.assertFalse(Contact.objects.filter(pk=self.duplicate.pk).exists())
        self.assertFalse(Contact.objects.filter(pk=later.duplicate_ids[0]).exists())

    def test_vanished_primary_leaves_its_duplicates_in_place(self):
        gone, first, later = self._groups_with_vanished_contact(vanished_primary=True)

        with patch("dedupe.services.find_duplicate_groups", return_value=[first, later]):
            result = apply_dedupe(self.team.pk, user=self.user)

        self.assertEqual(result["status"], "partial")
        self.assertEqual(len(result["errors"]), 1)
        self.assertIn(str(gone), result["errors"][0])
        self.assertTrue(Contact.objects.filter(pk=self.duplicate.pk).exists())
        self.assertFalse(ArchivedContact.objects.filter(original_contact_id=self.duplicate.pk).exists())
        self.assertEqual(result["archived_count"], 1)
        self.assertFalse(Contact.objects.filter(pk=later.duplicate_ids[0]).exists())
        self.assertEqual(CleanupRun.objects.get().status, CleanupRun.Status.PARTIAL)

    def test_rerun_is_idempotent(self):
        apply_dedupe(self.team.pk, user=self.user)
        second = apply_dedupe(self.team.pk, user=self.user)
        self.assertEqual(second["group_count"], 0)
        self.assertEqual(second["archived_count"], 0)
        self.assertEqual(second["status"], "completed")
        self.assertEqual(CleanupRun.objects.count(), 2)

    def test_scope_excludes_other_teams(self):
        other = Team.objects.create(name="Bern")
        _make_contact("Alpha AG", _dt(2022), team=other)
        result = apply_dedupe(other.pk, user=self.user)
        self.assertEqual(result["group_count"], 0)
        self.assertEqual(Contact.objects.count(), 3)

    def test_unauthorised_user_is_rejected_before_any_write(self):
        intern = _make_user(email="intern@example.ch")
        with self.assertRaises(AuthorizationError):
            apply_dedupe(self.team.pk, user=intern)
        self.assertEqual(Contact.objects.count(), 2)
        self.assertFalse(CleanupRun.objects.exists())

    def test_invalid_team_id_is_rejected(self):
        with self.assertRaises(ValidationError):
            apply_dedupe("abc", user=self.user)
        with self.assertRaises(ValidationError):
            apply_dedupe(9999, user=self.user)


@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class PreviewDedupeTests(TestCase):
    def setUp(self):
        self.user = _make_user()

    def test_preview_is_read_only_and_matches_apply(self):
        _make_contact("Alpha AG", _dt(2023), phone="0441112233")
        _make_contact("Alpha Holding", _dt(2024), phone="044 111 22 33")

        preview = preview_dedupe(None, user=self.user)
        self.assertEqual(preview["group_count"], 1)
        self.assertEqual(preview["duplicate_count"], 1)
        self.assertEqual(preview["examples"][0]["match_reason"], "phone")
        self.assertEqual(Contact.objects.count(), 2)
        self.assertFalse(ArchivedContact.objects.exists())

        result = apply_dedupe(None, user=self.user)
        self.assertEqual(result["examples"], preview["examples"])

    def test_examples_are_capped(self):
        for i in range(11):
            _make_contact(f"Firma {i:02d}", _dt(2023))
            _make_contact(f"firma {i:02d}", _dt(2024))

        preview = preview_dedupe(None, user=self.user)
        self.assertEqual(preview["group_count"], 11)
        self.assertEqual(len(preview["examples"]), 10)


# ── Encoding repair ────────────────────────────────────────────────────────────

class RepairMojibakeTests(TestCase):
    def test_repairs_umlauts_and_accents(self):
        self.assertEqual(repair_mojibake("MÃ¼ller GmbH"), "Müller GmbH")
        self.assertEqual(repair_mojibake("StraÃŸe 4, GenÃ¨ve"), "Straße 4, Genève")
        self.assertEqual(repair_mojibake("Ã–l & Ã„pfel"), "Öl & Äpfel")

    def test_clean_and_empty_text_is_unchanged(self):
        self.assertEqual(repair_mojibake("Zürich"), "Zürich")
        self.assertIsNone(repair_mojibake(None))
        self.assertEqual(repair_mojibake(""), "")

    def test_name_key_does_not_repair(self):
        self.assertNotEqual(normalized_name("MÃ¼ller GmbH"), normalized_name("Müller GmbH"))


@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class FixContactEncodingTests(TestCase):
    def setUp(self):
        self.user = _make_user()
        self.team = Team.objects.create(name="Zürich")
        self.broken = _make_contact(
            "MÃ¼ller GmbH", _dt(2024), team=self.team,
            contact_name="JÃ¶rg", street="BahnhofstraÃŸe 1", city="ZÃ¼rich",
        )
        self.clean = _make_contact("Müller GmbH", _dt(2023), team=self.team, city="Zürich")

    def test_repairs_text_fields(self):
        result = fix_contact_encoding(self.team.pk, user=self.user)

        self.assertEqual(result, {"fixed": 1, "total": 2, "errors": []})
        self.broken.refresh_from_db()
        self.assertEqual(self.broken.company_name, "Müller GmbH")
        self.assertEqual(self.broken.contact_name, "Jörg")
        self.assertEqual(self.broken.street, "Bahnhofstraße 1")
        self.assertEqual(self.broken.city, "Zürich")

    def test_repaired_contact_then_clusters(self):
        self.assertEqual(preview_dedupe(self.team.pk, user=self.user)["group_count"], 0)
        fix_contact_encoding(self.team.pk, user=self.user)
        preview = preview_dedupe(self.team.pk, user=self.user)
        self.assertEqual(preview["group_count"], 1)
        self.assertEqual(preview["examples"][0]["match_reason"], "name")

    def test_second_run_finds_nothing(self):
        fix_contact_encoding(None, user=self.user)
        self.assertEqual(fix_contact_encoding(None, user=self.user)["fixed"], 0)

    def test_scope_excludes_other_teams(self):
        other = Team.objects.create(name="Genf")
        result = fix_contact_encoding(other.pk, user=self.user)
        self.assertEqual(result["total"], 0)
        self.broken.refresh_from_db()
        self.assertEqual(self.broken.company_name, "MÃ¼ller GmbH")

    def test_failed_update_is_reported(self):
        with patch.object(Contact.objects, "filter", side_effect=DatabaseError("row locked")):
            result = fix_contact_encoding(None, user=self.user)

        self.assertEqual(result["fixed"], 0)
        self.assertEqual(result["total"], 2)
        self.assertEqual(len(result["errors"]), 1)
        self.assertIn("row locked", result["errors"][0])

    def test_requires_permission(self):
        with self.assertRaises(AuthorizationError):
            fix_contact_encoding(None, user=_make_user(email="intern@example.ch"))
        self.broken.refresh_from_db()
        self.assertEqual(self.broken.city, "ZÃ¼rich")

    def test_command_reports_counts(self):
        out = io.StringIO()
        call_command("fix_contact_encoding", "--user", OPS_EMAIL, stdout=out)
        self.assertIn("Contacts fixed   : 1", out.getvalue())
        self.assertEqual(Contact.objects.filter(company_name="Müller GmbH").count(), 2)


# ── Archive / restore ──────────────────────────────────────────────────────────

@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class ArchiveRestoreTests(TestCase):
    def setUp(self):
        self.user = _make_user()
        self.team = Team.objects.create(name="Zürich")
        self.contact = _make_contact(
            "Beta Bau AG", _dt(2023, 4, 2), team=self.team,
            phone="031 555 66 77", email="info@beta-bau.ch", latitude=46.95, longitude=7.44,
        )
        ContactNote.objects.create(contact=self.contact, author=self.user, body="Met at fair")
        ContactPerson.objects.create(contact=self.contact, first_name="Urs", role="HR")
        ContactPerson.objects.create(contact=self.contact, first_name="Eva", role="CEO")
        Vacancy.objects.create(contact=self.contact, title="Mason", urgency=3)
        CallLog.objects.create(contact=self.contact, outcome=CallLog.Outcome.CALLBACK)
        UserContactSetting.objects.create(user=self.user, contact=self.contact, status="hot")
        contact_list = ContactList.objects.create(name="Bau", team=self.team)
        ListMember.objects.create(contact_list=contact_list, contact=self.contact)
        candidate = Candidate.objects.create(first_name="Ion", last_name="Pop", full_name="Ion Pop")
        CompanyEmailDraft.objects.create(candidate=candidate, company=self.contact, best_subject="Hi")

    def test_archive_delete_restore_round_trip(self):
        original_id = self.contact.pk
        archive = archive_contact(
            self.contact, deleted_by=self.user, reason=ArchivedContact.Reason.MANUAL_DELETE,
        )
        self.contact.delete()
        self.assertFalse(ContactPerson.objects.exists())

        result = restore_archived_contact(archive.pk, user=self.user)

        self.assertEqual(result["restored_contact_id"], str(original_id))
        self.assertEqual(result["restored"], {
            "contact_persons": 2,
            "contact_notes": 1,
            "vacancies": 1,
            "call_logs": 1,
            "user_contact_settings": 1,
            "list_members": 1,
            "email_drafts": 1,
        })
        self.assertEqual(result["skipped"], {})
        restored = Contact.objects.get(pk=original_id)
        self.assertEqual(restored.company_name, "Beta Bau AG")
        self.assertEqual(restored.phone, "031 555 66 77")
        self.assertEqual(restored.team, self.team)
        self.assertEqual(restored.created_at, _dt(2023, 4, 2))
        self.assertEqual(restored.latitude, 46.95)
        self.assertEqual(restored.persons.count(), 2)
        self.assertEqual(restored.vacancies.get().urgency, 3)
        self.assertEqual(restored.user_settings.get().status, "hot")
        self.assertEqual(restored.email_drafts.get().best_subject, "Hi")
        self.assertFalse(ArchivedContact.objects.filter(pk=archive.pk).exists())

    def test_restore_conflict_leaves_archive_intact(self):
        archive = archive_contact(self.contact, deleted_by=self.user)
        with self.assertRaises(ConflictError):
            restore_archived_contact(archive.pk, user=self.user)
        self.assertTrue(ArchivedContact.objects.filter(pk=archive.pk).exists())
        self.assertEqual(self.contact.persons.count(), 2)

    def test_restore_is_single_use(self):
        archive = archive_contact(self.contact, deleted_by=self.user)
        self.contact.delete()
        restore_archived_contact(str(archive.pk), user=self.user)
        with self.assertRaises(NotFoundError):
            restore_archived_contact(str(archive.pk), user=self.user)

    def test_restore_rejects_malformed_id(self):
        with self.assertRaises(ValidationError):
            restore_archived_contact("not-a-uuid", user=self.user)

    def test_restore_unknown_id(self):
        with self.assertRaises(NotFoundError):
            restore_archived_contact(uuid.uuid4(), user=self.user)

    def test_restore_requires_permission(self):
        archive = archive_contact(self.contact, deleted_by=self.user)
        with self.assertRaises(AuthorizationError):
            restore_archived_contact(archive.pk, user=_make_user(email="intern@example.ch"))

    def test_restore_undoes_a_dedupe_merge(self):
        duplicate = _make_contact("beta bau ag", _dt(2024), team=self.team)
        ContactNote.objects.create(contact=duplicate, body="from duplicate")
        apply_dedupe(self.team.pk, user=self.user)
        self.assertFalse(Contact.objects.filter(pk=duplicate.pk).exists())

        archive = ArchivedContact.objects.get(original_contact_id=duplicate.pk)
        result = restore_archived_contact(archive.pk, user=self.user)

        self.assertEqual(result["restored"]["contact_notes"], 1)
        self.assertEqual(Contact.objects.get(pk=duplicate.pk).contact_notes.get().body, "from duplicate")

    def test_list_archived_newest_first_with_total(self):
        first = archive_contact(self.contact, deleted_by=self.user)
        other = _make_contact("Gamma AG", team=self.team)
        second = archive_contact(other, deleted_by=self.user, run_id=uuid.uuid4())
        ArchivedContact.objects.filter(pk=first.pk).update(deleted_at=_dt(2024, 1))
        ArchivedContact.objects.filter(pk=second.pk).update(deleted_at=_dt(2024, 2))

        page = list_archived(self.team.pk, user=self.user)
        self.assertEqual(page["total"], 2)
        self.assertEqual([item["id"] for item in page["items"]], [str(second.pk), str(first.pk)])
        item = page["items"][0]
        self.assertEqual(item["original_id"], str(other.pk))
        self.assertEqual(item["company_name"], "Gamma AG")
        self.assertEqual(item["run_id"], str(second.run_id))
        self.assertIsNone(item["merged_into_id"])

    def test_list_archived_limit_is_clamped(self):
        archive_contact(self.contact, deleted_by=self.user)
        archive_contact(_make_contact("Gamma AG", team=self.team), deleted_by=self.user)

        page = list_archived(None, user=self.user, limit=0)
        self.assertEqual(len(page["items"]), 1)
        self.assertEqual(page["total"], 2)
        page = list_archived(None, user=self.user, limit=5000, offset=1)
        self.assertEqual(len(page["items"]), 1)

    def test_list_archived_filters_by_team(self):
        archive_contact(self.contact, deleted_by=self.user)
        other_team = Team.objects.create(name="Bern")
        self.assertEqual(list_archived(other_team.pk, user=self.user)["total"], 0)

    def test_list_archived_rejects_bad_paging(self):
        with self.assertRaises(ValidationError):
            list_archived(None, user=self.user, offset=-1)
        with self.assertRaises(ValidationError):
            list_archived(None, user=self.user, limit="ten")


@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class RestoreMissingReferenceTests(TransactionTestCase):
    """
    Restores that commit for real, so foreign key constraints are enforced
    against rows deleted after the archive was written.
    """

    def setUp(self):
        self.user = _make_user()
        self.author = _make_user(email="author@example.ch")
        self.team = Team.objects.create(name="Zürich")
        self.contact = _make_contact("Beta Bau AG", team=self.team)
        ContactNote.objects.create(contact=self.contact, author=self.author, body="Met at fair")

    def _archive_and_delete(self) -> ArchivedContact:
        archive = archive_contact(self.contact, deleted_by=self.user)
        self.contact.delete()
        return archive

    def test_deleted_note_author_is_restored_as_none(self):
        archive = self._archive_and_delete()
        self.author.delete()

        result = restore_archived_contact(archive.pk, user=self.user)

        self.assertEqual(result["restored"]["contact_notes"], 1)
        self.assertEqual(result["skipped"], {})
        note = Contact.objects.get(pk=self.contact.pk).contact_notes.get()
        self.assertEqual(note.body, "Met at fair")
        self.assertIsNone(note.author_id)

    def test_membership_of_deleted_list_is_skipped(self):
        kept = ContactList.objects.create(name="Bau", team=self.team)
        dropped = ContactList.objects.create(name="Holz", team=self.team)
        ListMember.objects.create(contact_list=kept, contact=self.contact)
        ListMember.objects.create(contact_list=dropped, contact=self.contact)
        archive = self._archive_and_delete()
        dropped.delete()

        result = restore_archived_contact(archive.pk, user=self.user)

        self.assertEqual(result["restored"]["list_members"], 1)
        self.assertEqual(result["skipped"], {"list_members": 1})
        self.assertEqual(kept.members.get().contact_id, self.contact.pk)
        self.assertFalse(ArchivedContact.objects.filter(pk=archive.pk).exists())

    def test_draft_of_deleted_candidate_is_skipped(self):
        candidate = Candidate.objects.create(first_name="Ion", last_name="Pop", full_name="Ion Pop")
        CompanyEmailDraft.objects.create(candidate=candidate, company=self.contact, best_subject="Hi")
        archive = self._archive_and_delete()
        candidate.delete()

        result = restore_archived_contact(archive.pk, user=self.user)

        self.assertEqual(result["restored"]["email_drafts"], 0)
        self.assertEqual(result["skipped"], {"email_drafts": 1})
        self.assertTrue(Contact.objects.filter(pk=self.contact.pk).exists())

    def test_deleted_team_is_restored_as_none(self):
        archive = self._archive_and_delete()
        self.team.delete()

        result = restore_archived_contact(archive.pk, user=self.user)

        restored = Contact.objects.get(pk=result["restored_contact_id"])
        self.assertIsNone(restored.team_id)
        self.assertEqual(restored.contact_notes.get().author_id, self.author.pk)


# ── Views ──────────────────────────────────────────────────────────────────────

@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class CleanupViewTests(TestCase):
    def setUp(self):
        self.user = _make_user()
        self.team = Team.objects.create(name="Zürich")
        Profile.objects.create(user=self.user, team=self.team)
        self.primary = _make_contact("Alpha AG", _dt(2023), team=self.team)
        self.duplicate = _make_contact("alpha ag", _dt(2024), team=self.team)
        self.dedupe_url = reverse("dedupe:dedupe")
        self.restore_url = reverse("dedupe:restore")

    def test_unauthenticated_is_401(self):
        self.assertEqual(self.client.get(self.dedupe_url).status_code, 401)
        self.assertEqual(self.client.post(self.restore_url).status_code, 401)

    def test_not_allowed_is_403(self):
        self.client.force_login(_make_user(email="intern@example.ch"))
        self.assertEqual(self.client.get(self.dedupe_url).status_code, 403)

    def test_get_previews_users_team(self):
        self.client.force_login(self.user)
        response = self.client.get(self.dedupe_url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["group_count"], 1)
        self.assertEqual(Contact.objects.count(), 2)

    def test_post_applies(self):
        self.client.force_login(self.user)
        response = self.client.post(self.dedupe_url)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "completed")
        self.assertEqual(body["archived_count"], 1)
        self.assertTrue(CleanupRun.objects.filter(pk=body["run_id"]).exists())

    def test_other_methods_not_allowed(self):
        self.client.force_login(self.user)
        self.assertEqual(self.client.delete(self.dedupe_url).status_code, 405)

    def test_restore_list(self):
        archive_contact(self.duplicate, deleted_by=self.user)
        self.client.force_login(self.user)
        response = self.client.get(self.restore_url, {"limit": "10"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total"], 1)

    def test_restore_status_codes(self):
        self.client.force_login(self.user)
        archive = archive_contact(self.duplicate, deleted_by=self.user)

        response = self.client.post(self.restore_url, {}, content_type="application/json")
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            self.restore_url, {"archive_id": "garbage"}, content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            self.restore_url, {"archive_id": str(uuid.uuid4())}, content_type="application/json",
        )
        self.assertEqual(response.status_code, 404)
        # Contact still exists at the original id
        response = self.client.post(
            self.restore_url, {"archive_id": str(archive.pk)}, content_type="application/json",
        )
        self.assertEqual(response.status_code, 409)

        original_id = self.duplicate.pk
        self.duplicate.delete()
        response = self.client.post(self.restore_url, {"archive_id": str(archive.pk)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["restored_contact_id"], str(original_id))

    def test_persistence_error_is_500(self):
        self.client.force_login(self.user)
        with patch(
            "dedupe.services.restore_archived_contact",
            side_effect=PersistenceError("disk full"),
        ):
            response = self.client.post(
                self.restore_url, {"archive_id": str(uuid.uuid4())}, content_type="application/json",
            )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "disk full")


# ── Management commands ────────────────────────────────────────────────────────

@override_settings(DATA_CLEANUP_ALLOWED_EMAILS=[OPS_EMAIL])
class CleanupCommandTests(TestCase):
    def setUp(self):
        self.user = _make_user()
        _make_contact("Alpha AG", _dt(2023))
        _make_contact("alpha ag", _dt(2024))

    def test_preview_by_default(self):
        out = io.StringIO()
        call_command("dedupe_contacts", "--user", OPS_EMAIL, stdout=out)
        self.assertIn("Preview only", out.getvalue())
        self.assertEqual(Contact.objects.count(), 2)

    def test_apply_then_list_and_restore(self):
        out = io.StringIO()
        call_command("dedupe_contacts", "--user", OPS_EMAIL, "--apply", stdout=out)
        self.assertIn("Run completed", out.getvalue())
        self.assertEqual(Contact.objects.count(), 1)

        archive = ArchivedContact.objects.get()
        out = io.StringIO()
        call_command("restore_contact", "--user", OPS_EMAIL, "--list", stdout=out)
        self.assertIn(str(archive.pk), out.getvalue())

        out = io.StringIO()
        call_command("restore_contact", str(archive.pk), "--user", OPS_EMAIL, stdout=out)
        self.assertIn("Restored contact", out.getvalue())
        self.assertEqual(Contact.objects.count(), 2)

    def test_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command("dedupe_contacts", "--user", "nobody@example.ch")

    def test_unauthorised_user(self):
        _make_user(email="intern@example.ch")
        with self.assertRaises(CommandError):
            call_command("dedupe_contacts", "--user", "intern@example.ch", "--apply")
        self.assertEqual(Contact.objects.count(), 2)

    def test_restore_requires_id_or_list(self):
        with self.assertRaises(CommandError):
            call_command("restore_contact", "--user", OPS_EMAIL)
