"""
Unit tests for the compact share-link codec.
"""
import json

import pytest
from lzstring import LZString

from codec import (
    SCHEMA_VERSION, SCHEMAS_V2, STREAM_SCHEMA, decode_record, decode_share_fragment,
    encode_record, encode_share_fragment, inflate, minify, minify_json, trim_trailing
)
from config_utils import DEFAULT_EXPENSE_CATEGORY_IDS, JURISDICTIONS, get_default_state
from io_utils import state_to_dict
from models import (
    NO_LIMIT, CareerBreak, CustomLadder, ExpenseCategory, ExpenseJump, IncomeJump, IncomeStream,
    OneTimeExpense, PropertySettings, TaxBracket, TaxOverrides
)


@pytest.fixture
def rich_state(plan_state):
    """Plan state exercising every section of the payload"""
    state = plan_state
    state.income_streams[0].jumps = [IncomeJump(year=3, jump_percent=15, description='Promo')]
    state.income_streams[0].career_breaks = [CareerBreak(start_year=2, duration_months=6,
                                                         reduction_percent=50)]
    state.income_streams.append(IncomeStream(id='stream-2', name='Consulting',
                                             annual_income=20_000.4, growth_rate=0,
                                             start_year=2, end_work_year=3))
    state.expenses.categories[0].jumps = [ExpenseJump(year=4, change_type='setAmountPV',
                                                      value=18_000)]
    state.expenses.categories.append(ExpenseCategory(id='pets', name='Pets',
                                                     amount_type='percent',
                                                     percent_of_income=1.5))
    state.expenses.one_time_expenses = [OneTimeExpense(year=2, amount=15_000,
                                                       description='Wedding')]
    state.tax_overrides = TaxOverrides(
        filing_status_remapping={'California': {'Single': 'Married'}},
        custom_ladder=CustomLadder(enabled=True,
                                   income_tax=[TaxBracket(0, 40_000, 0.1),
                                               TaxBracket(40_000, NO_LIMIT, 0.25)],
                                   payroll_taxes=['social_security']),
        custom_deductions={'USA': 12_000},
    )
    state.property = PropertySettings(mode='own', details={'homeValue': 500_000,
                                                           'mortgageRemaining': 300_000})
    return state


class TestTrimTrailing:
    """Test trailing default trimming"""

    def test_trims_defaults_and_empties(self):
        """Test trailing defaults, blanks and empty lists are dropped"""
        assert trim_trailing([1, 5, 0, '', []], [1, 2, 0, '', []]) == [1, 5]

    def test_keeps_interior_defaults(self):
        """Test only trailing positions are trimmed"""
        assert trim_trailing([0, 5, 0], [0, 0, 0]) == [0, 5]

    def test_all_default(self):
        """Test an all-default record encodes to an empty array"""
        assert trim_trailing([0, 0], [0, 0]) == []


class TestStreamEncoding:
    """Test positional stream records"""

    def ctx(self):
        return {'schemas': SCHEMAS_V2, 'years_to_retirement': 30}

    def test_default_growth_and_linked_end_are_trimmed(self):
        """Test a stream with default growth and end year needs two positions"""
        record = {'name': 'Job', 'annual_income': 100_000, 'start_year': 1,
                  'end_work_year': 30, 'growth_rate': 2.7, 'individual_401k': 0,
                  'company_401k': 0, 'equity': 0, 'jumps': [], 'career_breaks': []}
        assert encode_record(record, STREAM_SCHEMA, self.ctx()) == ['Job', 100_000]

    def test_custom_growth_keeps_positions_before_it(self):
        """Test a non-default growth rate keeps the end-year position"""
        record = {'name': 'Job', 'annual_income': 100_000, 'start_year': 1,
                  'end_work_year': 30, 'growth_rate': 3, 'individual_401k': 0,
                  'company_401k': 0, 'equity': 0, 'jumps': [], 'career_breaks': []}
        assert encode_record(record, STREAM_SCHEMA, self.ctx()) == ['Job', 100_000, 1, 30, 3]

    def test_decode_restores_defaults(self):
        """Test missing and null positions take their defaults"""
        record = decode_record(['Job', 100_000, None], STREAM_SCHEMA, self.ctx())

        assert record['start_year'] == 1
        assert record['end_work_year'] == 30
        assert record['growth_rate'] == 2.7
        assert record['jumps'] == []


class TestMinify:
    """Test the compact payload"""

    def test_version_prefix(self, plan_state):
        """Test the payload starts with the schema version"""
        assert minify(plan_state)[0] == SCHEMA_VERSION

    def test_default_state_is_tiny(self):
        """Test a default plan only carries its one stream name"""
        assert minify(get_default_state()) == [SCHEMA_VERSION, [], [['Primary Income']]]

    def test_profile_uses_vocabulary_indices(self, plan_state):
        """Test location is written as an index into the jurisdiction list"""
        plan_state.profile.location = 'Texas'
        profile = minify(plan_state)[1]
        assert profile[0] == JURISDICTIONS.index('Texas')

    def test_unknown_location_written_as_string(self, plan_state):
        """Test values outside the vocabulary fall back to the raw string"""
        plan_state.profile.location = 'Atlantis'
        assert minify(plan_state)[1][0] == 'Atlantis'

    def test_money_rounded_half_up(self, plan_state):
        """Test money fields are rounded to whole dollars"""
        plan_state.income_streams[0].annual_income = 100_000.5
        assert minify(plan_state)[2][0][1] == 100_001

    def test_blank_default_categories_dropped(self):
        """Test default categories with nothing entered are not written"""
        state = get_default_state()
        state.expenses.categories[1].percent_of_income = 3
        categories = minify(state)[3][3]

        assert len(categories) == 1
        assert categories[0][0] == DEFAULT_EXPENSE_CATEGORY_IDS.index('utilities')

    def test_json_compact(self, plan_state):
        """Test the JSON form has no whitespace"""
        assert ' ' not in minify_json(plan_state).replace('Index Fund', '')


class TestInflate:
    """Test decoding payloads back to plan state"""

    def test_round_trip_is_stable(self, rich_state):
        """Test minify(inflate(minify(state))) reproduces the payload"""
        payload = minify(rich_state)
        assert minify(inflate(payload)) == payload

    def test_round_trip_values(self, rich_state):
        """Test decoded values match the original plan"""
        state = inflate(minify(rich_state))

        assert state.profile.location == 'California'
        assert state.profile.retirement_age == 35
        assert [s.name for s in state.income_streams] == ['Job', 'Consulting']
        assert state.income_streams[0].end_year_linked
        assert not state.income_streams[1].end_year_linked
        assert state.income_streams[1].end_work_year == 3
        assert state.income_streams[1].annual_income == 20_000
        assert state.income_streams[0].jumps[0].jump_percent == 15
        assert state.income_streams[0].career_breaks[0].reduction_percent == 50
        assert state.expenses.one_time_expenses[0].description == 'Wedding'
        assert state.investments_debt.investments[0].cost_basis == 80_000
        assert state.tax_overrides.custom_ladder.enabled
        assert state.tax_overrides.custom_ladder.income_tax[1].rate == 0.25
        assert state.tax_overrides.custom_deductions == {'USA': 12_000}
        assert state.property.mode == 'own'
        assert state.property.details['homeValue'] == 500_000

    def test_categories_merged_with_defaults(self, rich_state):
        """Test default categories come back in order, then custom ones"""
        categories = inflate(minify(rich_state)).expenses.categories
        ids = [c.id for c in categories]

        assert ids[:len(DEFAULT_EXPENSE_CATEGORY_IDS)] == DEFAULT_EXPENSE_CATEGORY_IDS
        assert ids[-1] == 'pets'
        housing = categories[0]
        assert housing.annual_amount == 24_000
        assert housing.jumps[0].change_type == 'setAmountPV'

    def test_cost_basis_equal_to_value_is_none(self, plan_state):
        """Test an untouched cost basis decodes as 'same as value'"""
        plan_state.investments_debt.investments[0].cost_basis = None
        state = inflate(minify(plan_state))
        assert state.investments_debt.investments[0].cost_basis is None

    def test_ids_regenerated(self, rich_state):
        """Test entity ids are rebuilt from positions"""
        state = inflate(minify(rich_state))

        assert [s.id for s in state.income_streams] == ['stream-1', 'stream-2']
        assert state.investments_debt.investments[0].id == 'inv-1'

    def test_unversioned_payload_uses_original_defaults(self):
        """Test arrays without a version decode with the original defaults"""
        state = inflate([[], [['Job', 90_000]], [0, 0, 3.0, [[0, 0, 10]]]])

        assert state.income_streams[0].annual_income == 90_000
        housing = state.expenses.categories[0]
        assert housing.annual_amount == 10
        assert housing.amount_type == 'fixed'
        assert housing.growth_rate == 2.7
        assert state.investments_debt.retirement_401k.individual_limit == 23_000
        assert state.investments_debt.retirement_401k.limit_growth == 0

    def test_unversioned_bare_category_list(self):
        """Test the oldest links with expenses stored as a list of categories"""
        state = inflate([[], [], [[0, 0, 12_000], [4, 0, 6_000]]])
        categories = {c.id: c for c in state.expenses.categories}

        assert not state.expenses.simple_mode
        assert categories['housing'].amount_type == 'fixed'
        assert categories['housing'].annual_amount == 12_000
        assert categories['housing'].growth_rate == 2.7
        assert categories['food'].annual_amount == 6_000

    def test_versioned_payload_uses_current_defaults(self):
        """Test version 2 payloads use the current 401k defaults"""
        state = inflate([2])

        assert state.investments_debt.retirement_401k.individual_limit == 23_500
        assert state.investments_debt.retirement_401k.limit_growth == 3.0

    def test_custom_ladder_object_form(self):
        """Test the original object form of a custom ladder is accepted"""
        ladder = {'enabled': True, 'incomeTax': [{'min': 0, 'max': NO_LIMIT, 'rate': 0.2}],
                  'payrollTaxes': ['FICA Medicare']}
        state = inflate([[], [], [], [], [], [{}, ladder]])
        custom = state.tax_overrides.custom_ladder

        assert custom.enabled
        assert custom.income_tax[0].rate == 0.2
        assert custom.payroll_taxes == ['medicare', 'additional_medicare']

    def test_plain_object_is_storage_format(self, plan_state):
        """Test a plain object decodes as a storage export"""
        state = inflate(state_to_dict(plan_state))
        assert state.income_streams[0].annual_income == 100_000

    def test_plain_object_expense_jump_values(self):
        """Test expense jumps in a plain object keep their changeValue"""
        state = inflate({'expenses': {'expenseCategories': [
            {'id': 'housing', 'name': 'Housing', 'amountType': 'fixed', 'annualAmount': 24_000,
             'jumps': [{'year': 3, 'changeType': 'percent', 'changeValue': 10}]}]}})
        jump = state.expenses.categories[0].jumps[0]

        assert jump.year == 3
        assert jump.change_type == 'percent'
        assert jump.value == 10

    @pytest.mark.parametrize("payload", [
        [99],
        [2, 'profile'],
        [2, [], 'streams'],
        [True],
        [2, [], [], [], [], [], [], [], [], []],
        'text',
        42,
    ])
    def test_corrupt_payload_returns_none(self, payload):
        """Test undecodable payloads yield None instead of raising"""
        assert inflate(payload) is None


class TestShareFragment:
    """Test the compressed #share= fragment"""

    def test_round_trip(self, rich_state):
        """Test a fragment decodes back to the same payload"""
        fragment = encode_share_fragment(rich_state)

        assert fragment.startswith('#share=')
        assert minify(decode_share_fragment(fragment)) == minify(rich_state)

    def test_accepts_full_url_and_bare_string(self, plan_state):
        """Test the fragment can be given in several forms"""
        fragment = encode_share_fragment(plan_state)
        compressed = fragment[len('#share='):]

        for text in (f"https://example.com/plan{fragment}", f"share={compressed}", compressed):
            assert decode_share_fragment(text).income_streams[0].name == 'Job'

    def test_url_safe(self, rich_state):
        """Test the compressed text needs no URL escaping"""
        compressed = encode_share_fragment(rich_state)[len('#share='):]
        assert all(c.isalnum() or c in '+-$' for c in compressed)

    @pytest.mark.parametrize("fragment", [None, '', '#share=', '#other'])
    def test_empty_fragment(self, fragment):
        """Test missing fragments yield None"""
        assert decode_share_fragment(fragment) is None

    def test_not_json(self):
        """Test a fragment that decompresses to non-JSON yields None"""
        compressed = LZString().compressToEncodedURIComponent('not json at all')
        assert decode_share_fragment(f"#share={compressed}") is None

    def test_json_but_not_a_plan(self):
        """Test a fragment holding the wrong JSON shape yields None"""
        compressed = LZString().compressToEncodedURIComponent(json.dumps([99, 1]))
        assert decode_share_fragment(compressed) is None
