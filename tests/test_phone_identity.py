from django.test import SimpleTestCase, TestCase
from iafe_core.adapters.config.composition_root import container as core_container
from iafe_core.adapters.utils.phone_utils import normalize_phone
from iafe_core.core.application.queries.account_queries import ResolveAccountByPhoneQuery
from iafe_core.core.application.services.phone_identity_resolver import PhoneIdentityResolver, phone_candidates
from iafe_core.core.domain.exceptions import InvalidInputError, NotFoundError

from tests.helpers.factories import make_account


class PhoneCandidatesTests(SimpleTestCase):
    def test_formatted_mobile_generates_all_forms_in_order(self):
        self.assertEqual(
            phone_candidates("(87) 98805-3483"),
            [
                "5587988053483",
                "+5587988053483",
                "87988053483",
                "558788053483",
                "+558788053483",
                "8788053483",
            ],
        )

    def test_international_input_gives_same_set(self):
        self.assertEqual(set(phone_candidates("+55 87 98805-3483")), set(phone_candidates("87988053483")))

    def test_landline_without_ninth_digit_also_tries_with_it(self):
        cands = phone_candidates("8733334444")
        self.assertIn("558733334444", cands)
        self.assertIn("5587933334444", cands)

    def test_no_duplicates_and_empty_input(self):
        cands = phone_candidates("5587988053483")
        self.assertEqual(len(cands), len(set(cands)))
        self.assertEqual(phone_candidates(""), [])
        self.assertEqual(phone_candidates(None), [])

    def test_unknown_shape_is_tried_as_is(self):
        self.assertEqual(phone_candidates("12345"), ["12345", "+12345"])


class PhoneIdentityResolverTests(SimpleTestCase):
    def test_stops_at_first_hit(self):
        seen = []

        def lookup(candidate):
            seen.append(candidate)
            return "acc-1" if candidate == "87988053483" else None

        resolver = PhoneIdentityResolver(lookup)
        self.assertEqual(resolver.resolve("(87) 98805-3483"), "acc-1")
        self.assertEqual(seen, ["5587988053483", "+5587988053483", "87988053483"])

    def test_not_found_raises(self):
        with self.assertRaises(NotFoundError) as ctx:
            PhoneIdentityResolver(lambda _c: None).resolve("(87) 98805-3483")
        self.assertEqual(ctx.exception.code, "account_not_found_for_phone")


class ResolveAccountByPhoneQueryTests(TestCase):
    def setUp(self):
        self.bus = core_container.query_bus()

    def test_account_stored_with_country_code_found_from_local_format(self):
        account = make_account(phone="5587988053483")
        dto = self.bus.dispatch(ResolveAccountByPhoneQuery(phone="(87) 98805-3483"))
        self.assertEqual(dto.account_id, str(account.id))
        self.assertEqual(dto.email, account.email)

    def test_legacy_account_without_ninth_digit(self):
        account = make_account(phone="+558788053483")
        dto = self.bus.dispatch(ResolveAccountByPhoneQuery(phone="87 98805 3483"))
        self.assertEqual(dto.account_id, str(account.id))

    def test_missing_phone_is_invalid(self):
        with self.assertRaises(InvalidInputError):
            self.bus.dispatch(ResolveAccountByPhoneQuery(phone="  "))

    def test_unknown_phone_is_not_found(self):
        make_account(phone="5511999990000")
        with self.assertRaises(NotFoundError):
            self.bus.dispatch(ResolveAccountByPhoneQuery(phone="(87) 98805-3483"))


class NormalizePhoneTests(SimpleTestCase):
    def test_brazilian_formats(self):
        self.assertEqual(normalize_phone("(87) 98805-3483"), "5587988053483")
        self.assertEqual(normalize_phone("+55 87 98805-3483", with_plus=True), "+5587988053483")

    def test_garbage_is_rejected(self):
        self.assertIsNone(normalize_phone("abc"))
        self.assertIsNone(normalize_phone(""))
