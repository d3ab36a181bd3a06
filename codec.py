"""
Compact state codec for shareable links.

Every entity is written as a fixed-position array described by a schema table
of ``Field(name, default, kind)`` entries. ``minify`` and ``inflate`` walk the
same tables, so the two directions cannot drift apart. Trailing positions equal
to their default (or empty) are trimmed at every nesting level and restored
from the table on decode.

Payload layout (version 2)::

    [2, profile, streams, expenses, one_time, investments, taxes, property]

Arrays without the version prefix are the original link format and decode
with the version 1 tables. Plain objects are the storage export format.
"""
import copy
import json
import logging
import math
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from lzstring import LZString

from config_utils import (
    COUNTRIES, DEFAULT_EXPENSE_CATEGORIES, DEFAULT_EXPENSE_CATEGORY_IDS,
    EXPENSE_JUMP_TYPES, FILING_STATUSES, JURISDICTIONS, PROPERTY_MODES
)
from io_utils import custom_ladder_from_dict, state_from_dict
from models import (
    NO_LIMIT, CareerBreak, CodecError, CustomLadder, ExpenseCategory, ExpenseJump,
    ExpensesConfig, IncomeJump, IncomeStream, Investment, InvestmentsDebt, OneTimeExpense,
    PlanState, Profile, PropertySettings, Retirement401k, TaxBracket, TaxOverrides
)


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
SHARE_PREFIX = '#share='

Context = Dict[str, Any]


# ----------------------------------------------------------------------------
# Field kinds
# ----------------------------------------------------------------------------

class Raw:
    """Value stored as is"""

    def encode(self, value, ctx: Context):
        return value

    def decode(self, raw, ctx: Context):
        return raw


class Money(Raw):
    """Whole dollars, rounded half-up"""

    def encode(self, value, ctx: Context):
        if value is None:
            return None
        try:
            return int(math.floor(float(value) + 0.5))
        except (TypeError, ValueError):
            return value


class Flag(Raw):
    """Booleans as 1 / 0"""

    def encode(self, value, ctx: Context):
        if value is None:
            return None
        return 1 if value else 0

    def decode(self, raw, ctx: Context):
        return bool(raw)


class IndexOf(Raw):
    """Index into a static vocabulary, falling back to the raw string"""

    def __init__(self, vocabulary: Sequence[str]):
        self.vocabulary = list(vocabulary)

    def encode(self, value, ctx: Context):
        if value in self.vocabulary:
            return self.vocabulary.index(value)
        return value

    def decode(self, raw, ctx: Context):
        if isinstance(raw, int) and not isinstance(raw, bool):
            if 0 <= raw < len(self.vocabulary):
                return self.vocabulary[raw]
            raise CodecError(f"Index {raw} outside vocabulary of {len(self.vocabulary)}")
        return raw


class Json(Raw):
    """Nested JSON value (dict or list) copied through"""

    def encode(self, value, ctx: Context):
        return copy.deepcopy(value)

    def decode(self, raw, ctx: Context):
        return copy.deepcopy(raw)


class Nested(Raw):
    """A sub-record encoded with its own schema"""

    def __init__(self, schema_name: str, optional: bool = False):
        self.schema_name = schema_name
        self.optional = optional

    def encode(self, value, ctx: Context):
        if value is None:
            return None
        return encode_record(value, ctx['schemas'][self.schema_name], ctx)

    def decode(self, raw, ctx: Context):
        return decode_record(raw, ctx['schemas'][self.schema_name], ctx)


class ListOf(Raw):
    """List of sub-records sharing one schema"""

    def __init__(self, schema_name: str):
        self.schema_name = schema_name

    def encode(self, value, ctx: Context):
        schema = ctx['schemas'][self.schema_name]
        return [encode_record(item, schema, ctx) for item in (value or [])]

    def decode(self, raw, ctx: Context):
        if not isinstance(raw, list):
            raise CodecError(f"Expected a list for {self.schema_name}, got {type(raw).__name__}")
        schema = ctx['schemas'][self.schema_name]
        return [decode_record(item, schema, ctx) for item in raw]


class CustomLadderKind(Nested):
    """Custom ladder sub-record; the original link format stored it as an object"""

    def decode(self, raw, ctx: Context):
        if isinstance(raw, dict):
            return _custom_ladder_record(custom_ladder_from_dict(raw))
        return super().decode(raw, ctx)


class Computed(NamedTuple):
    """Default derived from the decode context and the fields decoded before it"""
    compute: Callable[[Context, Dict[str, Any]], Any]


class Field(NamedTuple):
    name: str
    default: Any = None
    kind: Raw = Raw()


MONEY = Money()
FLAG = Flag()
JSON = Json()
AMOUNT_TYPE = IndexOf(['dollar', 'percent'])


def _nested_default(schema_name: str) -> Computed:
    return Computed(lambda ctx, record: decode_record([], ctx['schemas'][schema_name], ctx))


def _years_to_retirement(ctx: Context, record: Dict[str, Any]) -> int:
    return ctx['years_to_retirement']


def _category_name(ctx: Context, record: Dict[str, Any]) -> str:
    for category in DEFAULT_EXPENSE_CATEGORIES:
        if category['id'] == record.get('id'):
            return category['name']
    return str(record.get('id') or '')


# ----------------------------------------------------------------------------
# Schema tables
# ----------------------------------------------------------------------------

PROFILE_SCHEMA = (
    Field('location', 'California', IndexOf(JURISDICTIONS)),
    Field('country', 'USA', IndexOf(COUNTRIES)),
    Field('filing_status', 'Single', IndexOf(FILING_STATUSES)),
    Field('age', 30),
    Field('retirement_age', 65),
    Field('current_cash', 0, MONEY),
    Field('target_cash', 0, MONEY),
    Field('inflation_rate', 2.7),
    Field('current_savings', 0, MONEY),
)

INCOME_JUMP_SCHEMA = (
    Field('year', 1),
    Field('jump_percent', 0),
    Field('description', ''),
)

CAREER_BREAK_SCHEMA = (
    Field('start_year', 1),
    Field('duration_months', 12),
    Field('reduction_percent', 100),
    Field('description', ''),
)

STREAM_SCHEMA = (
    Field('name', ''),
    Field('annual_income', 0, MONEY),
    Field('start_year', 1),
    Field('end_work_year', Computed(_years_to_retirement)),
    Field('growth_rate', 2.7),
    Field('individual_401k', 0, MONEY),
    Field('company_401k', 0, MONEY),
    Field('equity', 0, MONEY),
    Field('jumps', [], ListOf('income_jump')),
    Field('career_breaks', [], ListOf('career_break')),
)

EXPENSE_JUMP_SCHEMA = (
    Field('year', 1),
    Field('change_type', 'percent', IndexOf(EXPENSE_JUMP_TYPES)),
    Field('value', 0),
    Field('description', ''),
)

CATEGORY_SCHEMA = (
    Field('id', 'other', IndexOf(DEFAULT_EXPENSE_CATEGORY_IDS)),
    Field('is_percent', True, FLAG),
    Field('value', 0),
    Field('growth_rate', None),
    Field('jumps', [], ListOf('expense_jump')),
    Field('name', Computed(_category_name)),
)

EXPENSES_SCHEMA = (
    Field('simple_mode', False, FLAG),
    Field('total_monthly_expense', 0, MONEY),
    Field('simple_growth_rate', 3.0),
    Field('categories', [], ListOf('category')),
)

ONE_TIME_SCHEMA = (
    Field('year', 1),
    Field('amount', 0, MONEY),
    Field('description', ''),
)

RETIREMENT_401K_SCHEMA = (
    Field('current_value', 0, MONEY),
    Field('growth_rate', 7.0),
    Field('individual_limit', 23_500, MONEY),
    Field('limit_growth', 3.0),
    Field('company_contribution', 0, MONEY),
)

INVESTMENT_SCHEMA = (
    Field('current_value', 0, MONEY),
    Field('growth_rate', 7.0),
    Field('portfolio_percent', 0),
    Field('cost_basis', Computed(lambda ctx, record: record.get('current_value')), MONEY),
    Field('name', ''),
)

INVESTMENTS_SCHEMA = (
    Field('current_cash', 0, MONEY),
    Field('target_cash', 0, MONEY),
    Field('retirement_401k', _nested_default('retirement_401k'), Nested('retirement_401k')),
    Field('investments', [], ListOf('investment')),
)

BRACKET_SCHEMA = (
    Field('min', 0),
    Field('rate', 0),
    Field('max', NO_LIMIT),
)

CUSTOM_LADDER_SCHEMA = (
    Field('enabled', False, FLAG),
    Field('income_tax', [], ListOf('bracket')),
    Field('capital_gains_tax', [], ListOf('bracket')),
    Field('payroll_taxes', [], JSON),
)

TAX_SCHEMA = (
    Field('filing_status_remapping', {}, JSON),
    Field('custom_ladder', None, CustomLadderKind('custom_ladder', optional=True)),
    Field('custom_deductions', {}, JSON),
    Field('custom_credits', {}, JSON),
)

PROPERTY_DETAILS_SCHEMA = (
    Field('homeValue', 0, MONEY),
    Field('growthRate', 3.0),
    Field('mortgageRemaining', 0, MONEY),
    Field('monthlyPayment', 0, MONEY),
    Field('homePrice', 0, MONEY),
    Field('downPayment', 0),
    Field('downPaymentType', 'percent', AMOUNT_TYPE),
    Field('purchaseYear', 1),
    Field('mortgageRate', 6.5),
    Field('term', 30),
    Field('propertyTaxRate', 1.2),
    Field('insuranceRate', 0.5),
    Field('maintenanceRate', 1.0),
    Field('additionalExpense', 0, MONEY),
    Field('ownershipExpenseAmount', 0),
    Field('ownershipExpenseType', 'percent', AMOUNT_TYPE),
    Field('pmiAmount', 0),
    Field('pmiType', 'dollar', AMOUNT_TYPE),
    Field('rentalIncomeOffsetAmount', 0),
    Field('rentalIncomeOffsetType', 'dollar', AMOUNT_TYPE),
)

PROPERTY_SCHEMA = (
    Field('mode', 'none', IndexOf(PROPERTY_MODES)),
    Field('details', _nested_default('property_details'), Nested('property_details')),
)

SCHEMAS_V2 = {
    'profile': PROFILE_SCHEMA,
    'income_jump': INCOME_JUMP_SCHEMA,
    'career_break': CAREER_BREAK_SCHEMA,
    'stream': STREAM_SCHEMA,
    'expense_jump': EXPENSE_JUMP_SCHEMA,
    'category': CATEGORY_SCHEMA,
    'expenses': EXPENSES_SCHEMA,
    'one_time': ONE_TIME_SCHEMA,
    'retirement_401k': RETIREMENT_401K_SCHEMA,
    'investment': INVESTMENT_SCHEMA,
    'investments': INVESTMENTS_SCHEMA,
    'bracket': BRACKET_SCHEMA,
    'custom_ladder': CUSTOM_LADDER_SCHEMA,
    'taxes': TAX_SCHEMA,
    'property_details': PROPERTY_DETAILS_SCHEMA,
    'property': PROPERTY_SCHEMA,
}


def _with_defaults(schema: tuple, **defaults) -> tuple:
    return tuple(f._replace(default=defaults[f.name]) if f.name in defaults else f
                 for f in schema)


# The original link format: same positions, older defaults
SCHEMAS_V1 = dict(
    SCHEMAS_V2,
    category=_with_defaults(CATEGORY_SCHEMA, growth_rate=2.7),
    retirement_401k=_with_defaults(RETIREMENT_401K_SCHEMA, individual_limit=23_000,
                                   limit_growth=0),
)

SCHEMAS = {1: SCHEMAS_V1, 2: SCHEMAS_V2}

SECTIONS = ('profile', 'streams', 'expenses', 'one_time', 'investments', 'taxes', 'property')


# ----------------------------------------------------------------------------
# Generic record encoding
# ----------------------------------------------------------------------------

def _is_empty(value: Any) -> bool:
    return value is None or value == '' or value == [] or value == {}


def trim_trailing(values: List[Any], defaults: Sequence[Any]) -> List[Any]:
    """
    Drop trailing entries that are empty or equal to their positional default.

    Args:
        values: Encoded values
        defaults: Encoded defaults, aligned with values

    Returns:
        The shortest prefix that still carries every non-default value
    """
    end = len(values)
    while end > 0:
        value = values[end - 1]
        default = defaults[end - 1] if end - 1 < len(defaults) else None
        if _is_empty(value) or value == default:
            end -= 1
        else:
            break
    return values[:end]


def _default(field: Field, ctx: Context, record: Dict[str, Any]) -> Any:
    if isinstance(field.default, Computed):
        return field.default.compute(ctx, record)
    return copy.deepcopy(field.default)


def encode_record(record: Dict[str, Any], schema: tuple, ctx: Context) -> List[Any]:
    values = [f.kind.encode(record.get(f.name), ctx) for f in schema]
    defaults = [f.kind.encode(_default(f, ctx, record), ctx) for f in schema]
    return trim_trailing(values, defaults)


def decode_record(raw: Any, schema: tuple, ctx: Context) -> Dict[str, Any]:
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise CodecError(f"Expected an array, got {type(raw).__name__}")

    record: Dict[str, Any] = {}
    for i, f in enumerate(schema):
        if i < len(raw) and raw[i] is not None:
            record[f.name] = f.kind.decode(raw[i], ctx)
        elif isinstance(f.kind, Nested) and f.kind.optional:
            record[f.name] = None
        else:
            record[f.name] = _default(f, ctx, record)
    return record


# ----------------------------------------------------------------------------
# Model <-> record adapters
# ----------------------------------------------------------------------------

def _profile_record(profile: Profile) -> Dict[str, Any]:
    return {f.name: getattr(profile, f.name) for f in PROFILE_SCHEMA}


def _stream_record(stream: IncomeStream, years_to_retirement: int) -> Dict[str, Any]:
    return {
        'name': stream.name,
        'annual_income': stream.annual_income,
        'start_year': stream.start_year,
        'end_work_year': stream.effective_end_year(years_to_retirement),
        'growth_rate': stream.growth_rate,
        'individual_401k': stream.individual_401k,
        'company_401k': stream.company_401k,
        'equity': stream.equity,
        'jumps': [{'year': j.year, 'jump_percent': j.jump_percent,
                   'description': j.description} for j in stream.jumps],
        'career_breaks': [{'start_year': b.start_year, 'duration_months': b.duration_months,
                           'reduction_percent': b.reduction_percent,
                           'description': b.description} for b in stream.career_breaks],
    }


def _stream_from_record(index: int, record: Dict[str, Any],
                        years_to_retirement: int) -> IncomeStream:
    end_year = record['end_work_year']
    return IncomeStream(
        id=f'stream-{index + 1}',
        name=record['name'],
        annual_income=record['annual_income'],
        growth_rate=record['growth_rate'],
        start_year=record['start_year'],
        end_work_year=end_year,
        end_year_linked=end_year == years_to_retirement,
        individual_401k=record['individual_401k'],
        company_401k=record['company_401k'],
        equity=record['equity'],
        jumps=[IncomeJump(id=f'jump-{index}-{j}', **jump)
               for j, jump in enumerate(record['jumps'])],
        career_breaks=[CareerBreak(id=f'break-{index}-{j}', **brk)
                       for j, brk in enumerate(record['career_breaks'])],
    )


def _category_is_significant(category: ExpenseCategory) -> bool:
    if category.id not in DEFAULT_EXPENSE_CATEGORY_IDS:
        return True
    value = category.percent_of_income if category.is_percent else category.annual_amount
    return bool(value) or bool(category.jumps) or category.growth_rate is not None


def _category_record(category: ExpenseCategory) -> Dict[str, Any]:
    return {
        'id': category.id,
        'is_percent': category.is_percent,
        'value': category.percent_of_income if category.is_percent else category.annual_amount,
        'growth_rate': category.growth_rate,
        'jumps': [{'year': j.year, 'change_type': j.change_type, 'value': j.value,
                   'description': j.description} for j in category.jumps],
        'name': category.name,
    }


def _category_from_record(index: int, record: Dict[str, Any]) -> ExpenseCategory:
    is_percent = record['is_percent']
    return ExpenseCategory(
        id=record['id'],
        name=record['name'],
        amount_type='percent' if is_percent else 'fixed',
        annual_amount=0.0 if is_percent else record['value'],
        percent_of_income=record['value'] if is_percent else 0.0,
        growth_rate=record['growth_rate'],
        jumps=[ExpenseJump(id=f'exp-jump-{index}-{j}', **jump)
               for j, jump in enumerate(record['jumps'])],
    )


def _merge_categories(decoded: List[ExpenseCategory]) -> List[ExpenseCategory]:
    """Default categories in their usual order, then custom ones"""
    by_id = {c.id: c for c in decoded}
    merged = []
    for default in DEFAULT_EXPENSE_CATEGORIES:
        merged.append(by_id.pop(default['id'], None) or ExpenseCategory(
            id=default['id'], name=default['name'], amount_type='percent'))
    merged.extend(c for c in decoded if c.id in by_id)
    return merged


def _expenses_record(expenses: ExpensesConfig) -> Dict[str, Any]:
    return {
        'simple_mode': expenses.simple_mode,
        'total_monthly_expense': expenses.total_monthly_expense,
        'simple_growth_rate': expenses.simple_growth_rate,
        'categories': [_category_record(c) for c in expenses.categories
                       if _category_is_significant(c)],
    }


def _investments_record(investments_debt: InvestmentsDebt) -> Dict[str, Any]:
    retirement = investments_debt.retirement_401k
    return {
        'current_cash': investments_debt.current_cash,
        'target_cash': investments_debt.target_cash,
        'retirement_401k': {f.name: getattr(retirement, f.name) for f in RETIREMENT_401K_SCHEMA},
        'investments': [{
            'current_value': inv.current_value,
            'growth_rate': inv.growth_rate,
            'portfolio_percent': inv.portfolio_percent,
            'cost_basis': inv.effective_cost_basis,
            'name': inv.name,
        } for inv in investments_debt.investments],
    }


def _investments_from_record(record: Dict[str, Any]) -> InvestmentsDebt:
    investments = []
    for i, inv in enumerate(record['investments']):
        cost_basis = inv['cost_basis']
        investments.append(Investment(
            id=f'inv-{i + 1}',
            name=inv['name'],
            current_value=inv['current_value'],
            cost_basis=None if cost_basis == inv['current_value'] else cost_basis,
            growth_rate=inv['growth_rate'],
            portfolio_percent=inv['portfolio_percent'],
        ))
    return InvestmentsDebt(
        current_cash=record['current_cash'],
        target_cash=record['target_cash'],
        retirement_401k=Retirement401k(**record['retirement_401k']),
        investments=investments,
    )


def _bracket_records(brackets: List[TaxBracket]) -> List[Dict[str, Any]]:
    return [{'min': b.min, 'rate': b.rate, 'max': b.max} for b in brackets]


def _custom_ladder_record(ladder: Optional[CustomLadder]) -> Optional[Dict[str, Any]]:
    if ladder is None:
        return None
    return {
        'enabled': ladder.enabled,
        'income_tax': _bracket_records(ladder.income_tax),
        'capital_gains_tax': _bracket_records(ladder.capital_gains_tax),
        'payroll_taxes': list(ladder.payroll_taxes),
    }


def _custom_ladder_from_record(record: Optional[Dict[str, Any]]) -> Optional[CustomLadder]:
    if record is None:
        return None
    return CustomLadder(
        enabled=record['enabled'],
        income_tax=[TaxBracket(**b) for b in record['income_tax']],
        capital_gains_tax=[TaxBracket(**b) for b in record['capital_gains_tax']],
        payroll_taxes=list(record['payroll_taxes'] or []),
    )


def _tax_record(overrides: TaxOverrides) -> Dict[str, Any]:
    return {
        'filing_status_remapping': overrides.filing_status_remapping,
        'custom_ladder': _custom_ladder_record(overrides.custom_ladder),
        'custom_deductions': overrides.custom_deductions,
        'custom_credits': overrides.custom_credits,
    }


def _property_record(settings: PropertySettings) -> Dict[str, Any]:
    details = settings.details or {}
    return {
        'mode': settings.mode,
        'details': {f.name: details.get(f.name, f.default) for f in PROPERTY_DETAILS_SCHEMA},
    }


# ----------------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------------

def minify(state: PlanState) -> List[Any]:
    """
    Encode a plan state into the compact positional payload.

    Args:
        state: Complete plan state

    Returns:
        JSON-serializable nested list, prefixed with SCHEMA_VERSION
    """
    years_to_retirement = state.profile.years_to_retirement
    ctx: Context = {'schemas': SCHEMAS_V2, 'years_to_retirement': years_to_retirement}
    schemas = SCHEMAS_V2

    sections = [
        encode_record(_profile_record(state.profile), schemas['profile'], ctx),
        [encode_record(_stream_record(s, years_to_retirement), schemas['stream'], ctx)
         for s in state.income_streams],
        encode_record(_expenses_record(state.expenses), schemas['expenses'], ctx),
        [encode_record({'year': o.year, 'amount': o.amount, 'description': o.description},
                       schemas['one_time'], ctx)
         for o in state.expenses.one_time_expenses],
        encode_record(_investments_record(state.investments_debt), schemas['investments'], ctx),
        encode_record(_tax_record(state.tax_overrides), schemas['taxes'], ctx),
        encode_record(_property_record(state.property), schemas['property'], ctx),
    ]
    return [SCHEMA_VERSION] + trim_trailing(sections, [])


def _positional(schema: tuple, values: Dict[str, Any]) -> List[Any]:
    return [values.get(f.name) for f in schema]


def _split_payload(payload: List[Any]):
    if not payload:
        raise CodecError("Empty payload")
    head = payload[0]
    if isinstance(head, int) and not isinstance(head, bool):
        if head not in SCHEMAS:
            raise CodecError(f"Unsupported schema version {head}")
        return head, payload[1:]
    if isinstance(head, list) or head is None:
        return 1, payload
    raise CodecError(f"Unrecognized payload head {head!r}")


def _inflate_array(payload: List[Any]) -> PlanState:
    version, sections = _split_payload(payload)
    if len(sections) > len(SECTIONS):
        raise CodecError(f"Payload has {len(sections)} sections, expected at most {len(SECTIONS)}")
    sections = list(sections) + [None] * (len(SECTIONS) - len(sections))
    raw = dict(zip(SECTIONS, sections))
    schemas = SCHEMAS[version]
    ctx: Context = {'schemas': schemas}

    profile = Profile(**decode_record(raw['profile'], schemas['profile'], ctx))
    years_to_retirement = profile.years_to_retirement
    ctx['years_to_retirement'] = years_to_retirement

    streams = [_stream_from_record(i, record, years_to_retirement)
               for i, record in enumerate(ListOf('stream').decode(raw['streams'] or [], ctx))]

    raw_expenses = raw['expenses']
    if version == 1 and raw_expenses and isinstance(raw_expenses[0], list):
        # Oldest links stored the expenses section as a bare list of categories
        raw_expenses = _positional(schemas['expenses'], {'categories': raw_expenses})
    expenses_record = decode_record(raw_expenses, schemas['expenses'], ctx)
    categories = [_category_from_record(i, record)
                  for i, record in enumerate(expenses_record['categories'])]
    one_time = [OneTimeExpense(id=f'ote-{i}', **record)
                for i, record in enumerate(ListOf('one_time').decode(raw['one_time'] or [], ctx))]
    expenses = ExpensesConfig(
        categories=_merge_categories(categories),
        one_time_expenses=one_time,
        simple_mode=expenses_record['simple_mode'],
        total_monthly_expense=expenses_record['total_monthly_expense'],
        simple_growth_rate=expenses_record['simple_growth_rate'],
    )

    investments_debt = _investments_from_record(
        decode_record(raw['investments'], schemas['investments'], ctx))

    tax_record = decode_record(raw['taxes'], schemas['taxes'], ctx)
    tax_overrides = TaxOverrides(
        filing_status_remapping=tax_record['filing_status_remapping'] or {},
        custom_ladder=_custom_ladder_from_record(tax_record['custom_ladder']),
        custom_deductions=tax_record['custom_deductions'] or {},
        custom_credits=tax_record['custom_credits'] or {},
    )

    property_record = decode_record(raw['property'], schemas['property'], ctx)
    property_settings = PropertySettings(mode=property_record['mode'],
                                         details=property_record['details'])

    logger.debug(f"[Codec] Inflated version {version} payload with {len(streams)} stream(s)")
    return PlanState(profile=profile, income_streams=streams, expenses=expenses,
                     investments_debt=investments_debt, tax_overrides=tax_overrides,
                     property=property_settings)


def inflate(payload: Any) -> Optional[PlanState]:
    """
    Decode a compact payload (or a legacy plain-object export) into a plan state.

    Args:
        payload: Parsed JSON from a share link

    Returns:
        PlanState, or None when the payload cannot be decoded
    """
    try:
        if isinstance(payload, dict):
            return state_from_dict(payload)
        if isinstance(payload, list):
            return _inflate_array(payload)
        raise CodecError(f"Unsupported payload type {type(payload).__name__}")
    except (CodecError, TypeError, ValueError, KeyError, IndexError, AttributeError) as e:
        logger.warning(f"[Codec] Could not inflate shared state: {e}")
        return None


def minify_json(state: PlanState) -> str:
    return json.dumps(minify(state), separators=(',', ':'))


def encode_share_fragment(state: PlanState) -> str:
    """
    Build the ``#share=`` URL fragment for a plan state.

    Args:
        state: Plan state to share

    Returns:
        Fragment string including the ``#share=`` prefix
    """
    payload = minify_json(state)
    compressed = LZString().compressToEncodedURIComponent(payload)
    logger.debug(f"[Codec] Share payload {len(payload)} chars, compressed {len(compressed)}")
    return SHARE_PREFIX + compressed


def decode_share_fragment(fragment: Optional[str]) -> Optional[PlanState]:
    """
    Decode a share fragment, a full share URL, or the bare compressed string.

    Args:
        fragment: Text carrying the compressed payload

    Returns:
        PlanState, or None when there is no usable shared state
    """
    if not fragment:
        return None
    text = fragment.strip()
    if '#' in text:
        text = text.split('#', 1)[1]
    if text.startswith('share='):
        text = text[len('share='):]
    if not text:
        return None

    try:
        decompressed = LZString().decompressFromEncodedURIComponent(text)
    except (TypeError, ValueError, KeyError, IndexError, AttributeError) as e:
        logger.warning(f"[Codec] Could not decompress share link: {e}")
        return None
    if not decompressed:
        logger.warning("[Codec] Share link decompressed to nothing")
        return None

    try:
        payload = json.loads(decompressed)
    except ValueError as e:
        logger.warning(f"[Codec] Share link is not valid JSON: {e}")
        return None
    return inflate(payload)
