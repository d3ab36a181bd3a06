"""
Tax ladder table loading and resolution.
Parses the bracket/deduction/credit CSV tables and resolves the ladders that apply
to a profile, honouring filing-status remapping and custom user ladders.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from config_utils import get_default_app_config
from models import (
    NO_LIMIT, LadderNotFoundError, Profile, TaxBracket, TaxOverrides, ValidationWarnings,
    safe_float, safe_int
)
from tax import (
    PAYROLL_TAX_TYPES, TaxBreakdown, calculate_jurisdiction_tax, calculate_payroll_taxes,
    inflate_brackets
)


logger = logging.getLogger(__name__)

FEDERAL = 'Federal'
STATE_PROVINCE = 'State_Province'

LADDER_COLUMNS = ['ID', 'Region', 'State', 'Parent Region', 'TaxType', 'TaxedIncome',
                  'Filing Status', 'Range', 'RangeValue', 'Ladder Step', 'Rate']

# Profile filing statuses (lower-cased) to the statuses used in the ladder tables
FILING_STATUS_TO_LADDER = {
    'single': 'Single',
    'married': 'Married',
    'married filing jointly': 'Married',
    'qualifying widow(er)': 'Married',
    'head of household': 'Head_of_Household',
    'head_of_household': 'Head_of_Household',
    'married filing separately': 'Separate',
    'separate': 'Separate',
    'all': 'All',
}

PAYROLL_TYPES_BY_COUNTRY = {
    'USA': ['FICA Social Security', 'FICA Medicare', 'FICA Medicare Additional'],
    'Canada': ['CPP', 'EI'],
}

LadderKey = Tuple[str, str, str, str]
AmountKey = Tuple[str, str, str]


def to_ladder_filing_status(filing_status: str) -> str:
    """Map a profile filing status onto the ladder table vocabulary"""
    if not filing_status:
        return 'Single'
    return FILING_STATUS_TO_LADDER.get(str(filing_status).strip().lower(), str(filing_status))


def _fallback_statuses(country: Optional[str], filing_status: str) -> List[str]:
    """Filing statuses to try, in order, for a lookup"""
    chain = [filing_status]
    if filing_status != 'All':
        if country == 'Canada':
            chain.append('Single')
        elif country == 'USA':
            if filing_status == 'Head_of_Household':
                chain.append('Married')
            elif filing_status == 'Separate':
                chain.append('Single')
        chain.append('All')
    return list(dict.fromkeys(chain))


class TaxLadderTable:
    """Indexed, read-only view over the tax ladder, deduction and credit tables"""

    def __init__(self,
                 ladders: Dict[LadderKey, List[TaxBracket]],
                 metadata: Dict[str, Any],
                 deductions: Optional[Dict[AmountKey, float]] = None,
                 credits: Optional[Dict[AmountKey, float]] = None):
        self.ladders = ladders
        self.metadata = metadata
        self.deductions = deductions or {}
        self.credits = credits or {}

    @property
    def states(self) -> List[str]:
        return self.metadata.get('states', [])

    @property
    def countries(self) -> List[str]:
        return self.metadata.get('countries', [])

    def states_for_country(self, country: str) -> List[str]:
        return self.metadata.get('states_by_country', {}).get(country, [])

    def country_for(self, jurisdiction: str) -> Optional[str]:
        if jurisdiction in self.countries:
            return jurisdiction
        for country, states in self.metadata.get('states_by_country', {}).items():
            if jurisdiction in states:
                return country
        return None

    def get_ladder(self, region: str, jurisdiction: str, tax_type: str,
                   filing_status: str) -> List[TaxBracket]:
        """
        Look up one ladder, applying the filing-status fallback chain.

        Canada falls back to Single for every status; the USA maps Head of Household
        to Married and Separate to Single; both finally try 'All'.

        Raises:
            LadderNotFoundError: when no status in the chain has a ladder
        """
        country = jurisdiction if region == FEDERAL else self.country_for(jurisdiction)
        for status in _fallback_statuses(country, filing_status):
            ladder = self.ladders.get((region, jurisdiction, tax_type, status))
            if ladder is not None:
                if status != filing_status:
                    logger.debug(f"[TaxLadders] {jurisdiction} {tax_type}: "
                                 f"{filing_status} falls back to {status}")
                return list(ladder)
        raise LadderNotFoundError(jurisdiction, tax_type, filing_status)

    def _lookup_amount(self, amounts: Dict[AmountKey, float], region: str,
                       jurisdiction: str, filing_status: str) -> float:
        country = jurisdiction if region == FEDERAL else self.country_for(jurisdiction)
        for status in _fallback_statuses(country, filing_status):
            if (region, jurisdiction, status) in amounts:
                return amounts[(region, jurisdiction, status)]
        return 0.0

    def get_standard_deduction(self, region: str, jurisdiction: str, filing_status: str) -> float:
        return self._lookup_amount(self.deductions, region, jurisdiction, filing_status)

    def get_tax_credit(self, region: str, jurisdiction: str, filing_status: str) -> float:
        return self._lookup_amount(self.credits, region, jurisdiction, filing_status)


def _read_csv(source) -> pd.DataFrame:
    df = pd.read_csv(source, dtype=str, skipinitialspace=True, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    return df.apply(lambda col: col.str.strip())


def build_ladder_index(df: pd.DataFrame) -> Tuple[Dict[LadderKey, List[TaxBracket]], Dict[str, Any]]:
    """
    Group ladder rows into ordered bracket lists.

    Bot_Range rows set a step's min and Top_Range rows its max. A step without a
    max takes the next step's min; the last step gets the no-limit sentinel.

    Args:
        df: Ladder table rows (string columns)

    Returns:
        (ladders keyed by (region, jurisdiction, tax type, filing status), metadata)
    """
    missing = [c for c in ('Region', 'State', 'TaxType', 'Filing Status', 'Range',
                           'RangeValue', 'Ladder Step', 'Rate') if c not in df.columns]
    if missing:
        raise ValueError(f"Tax ladder table is missing columns: {', '.join(missing)}")

    states = set()
    countries = set()
    states_by_country: Dict[str, set] = {}
    steps: Dict[LadderKey, Dict[int, Dict[str, float]]] = {}

    for row in df.to_dict('records'):
        region = row['Region']
        state = row['State']
        parent = row.get('Parent Region', '')
        filing_status = to_ladder_filing_status(row['Filing Status'])
        key = (region, state, row['TaxType'], filing_status)

        if region == STATE_PROVINCE:
            states.add(state)
            states_by_country.setdefault(parent, set()).add(state)
        if parent:
            countries.add(parent)

        step = steps.setdefault(key, {}).setdefault(
            safe_int(row['Ladder Step'], 0), {'rate': safe_float(row['Rate'], 0.0)})
        if row['Range'] == 'Bot_Range':
            step['min'] = safe_float(row['RangeValue'], 0.0)
        elif row['Range'] == 'Top_Range':
            step['max'] = safe_float(row['RangeValue'], NO_LIMIT)

    ladders: Dict[LadderKey, List[TaxBracket]] = {}
    for key, ladder_steps in steps.items():
        ordered = [ladder_steps[i] for i in sorted(ladder_steps)]
        brackets = []
        for i, step in enumerate(ordered):
            if 'max' in step:
                upper = step['max']
            elif i + 1 < len(ordered):
                upper = ordered[i + 1].get('min', NO_LIMIT)
            else:
                upper = NO_LIMIT
            brackets.append(TaxBracket(min=step.get('min', 0.0), max=upper, rate=step['rate']))
        ladders[key] = brackets

    metadata = {
        'states': sorted(states),
        'countries': sorted(countries),
        'states_by_country': {c: sorted(s) for c, s in states_by_country.items()},
    }
    logger.debug(f"[TaxLadders] Indexed {len(ladders)} ladders for "
                 f"{len(metadata['states'])} states/provinces")
    return ladders, metadata


def _build_amount_index(df: pd.DataFrame, amount_column: str) -> Dict[AmountKey, float]:
    amounts = {}
    for row in df.to_dict('records'):
        region = row.get('Region') or STATE_PROVINCE
        key = (region, row['Jurisdiction'], to_ladder_filing_status(row['Filing_Status']))
        amounts[key] = amounts.get(key, 0.0) + safe_float(row.get(amount_column), 0.0)
    return amounts


def load_standard_deductions(source) -> Dict[AmountKey, float]:
    """Read a Region, Jurisdiction, Country, Filing_Status, Deduction_Amount table"""
    return _build_amount_index(_read_csv(source), 'Deduction_Amount')


def load_tax_credits(source) -> Dict[AmountKey, float]:
    """Read a tax credits table; several credit types for one key are summed"""
    return _build_amount_index(_read_csv(source), 'Tax_Credit_Amount')


def load_tax_ladders(source, deductions_source=None, credits_source=None) -> TaxLadderTable:
    """
    Load the tax ladder table and, optionally, deduction and credit tables.

    Args:
        source: Path or file-like object with the ladder CSV
        deductions_source: Optional standard deductions CSV
        credits_source: Optional tax credits CSV

    Returns:
        TaxLadderTable
    """
    ladders, metadata = build_ladder_index(_read_csv(source))
    deductions = load_standard_deductions(deductions_source) if deductions_source is not None else {}
    credits = load_tax_credits(credits_source) if credits_source is not None else {}
    return TaxLadderTable(ladders, metadata, deductions, credits)


def load_default_tables(config: Optional[Dict[str, Any]] = None) -> TaxLadderTable:
    """Load the tables named in the app config (bundled data/ directory by default)"""
    config = config or get_default_app_config()
    data_dir = Path(config['tax_data_dir'])
    deductions = data_dir / config['standard_deductions_file']
    credits = data_dir / config['tax_credits_file']
    return load_tax_ladders(
        data_dir / config['tax_ladders_file'],
        deductions if deductions.exists() else None,
        credits if credits.exists() else None,
    )


@dataclass
class ResolvedSource:
    """Brackets come from the ladder table for a jurisdiction and filing status"""
    jurisdiction: str
    filing_status: str


@dataclass
class CustomSource:
    """Brackets entered by the user, replacing the table entirely"""
    income_brackets: List[TaxBracket]
    capital_gains_brackets: List[TaxBracket] = field(default_factory=list)
    payroll_taxes: List[str] = field(default_factory=list)


TaxLadderSource = Union[ResolvedSource, CustomSource]


@dataclass
class ResolvedLadder:
    income_ladder: List[TaxBracket] = field(default_factory=list)
    cap_gains_ladder: List[TaxBracket] = field(default_factory=list)
    standard_deduction: float = 0.0
    tax_credit: float = 0.0
    found: bool = True
    warning: Optional[str] = None


def normalize_custom_brackets(brackets: List[TaxBracket]) -> List[TaxBracket]:
    """Sort by min and make the ladder contiguous, ending at the no-limit sentinel"""
    ordered = sorted(brackets, key=lambda b: safe_float(b.min, 0.0))
    result = []
    for i, bracket in enumerate(ordered):
        upper = safe_float(ordered[i + 1].min, 0.0) if i + 1 < len(ordered) else NO_LIMIT
        result.append(TaxBracket(min=safe_float(bracket.min, 0.0), max=upper,
                                 rate=safe_float(bracket.rate, 0.0)))
    return result


def remap_filing_status(jurisdiction: str, filing_status: str,
                        overrides: Optional[TaxOverrides]) -> str:
    if overrides and overrides.filing_status_remapping:
        remapped = overrides.filing_status_remapping.get(jurisdiction, {}).get(filing_status)
        if remapped:
            return remapped
    return filing_status


def ladder_source(profile: Profile, overrides: Optional[TaxOverrides] = None) -> TaxLadderSource:
    """Decide once whether taxes come from the table or from a custom ladder"""
    custom = overrides.custom_ladder if overrides else None
    if custom is not None and custom.enabled:
        return CustomSource(
            income_brackets=normalize_custom_brackets(custom.income_tax),
            capital_gains_brackets=normalize_custom_brackets(custom.capital_gains_tax),
            payroll_taxes=list(custom.payroll_taxes),
        )
    return ResolvedSource(
        jurisdiction=profile.location,
        filing_status=remap_filing_status(profile.location, profile.filing_status, overrides),
    )


def _zero_ladder(warning: Optional[str] = None) -> ResolvedLadder:
    return ResolvedLadder(income_ladder=[TaxBracket(0.0, NO_LIMIT, 0.0)],
                          found=warning is None, warning=warning)


def _resolve_from_table(table: TaxLadderTable, region: str, jurisdiction: str,
                        filing_status: str, overrides: Optional[TaxOverrides]) -> ResolvedLadder:
    status = to_ladder_filing_status(filing_status)
    try:
        try:
            income_ladder = table.get_ladder(region, jurisdiction, 'Income', status)
        except LadderNotFoundError:
            if region != FEDERAL:
                raise
            income_ladder = table.get_ladder(region, jurisdiction, 'Income_and_CapitalGains', status)
    except LadderNotFoundError as e:
        logger.warning(f"[TaxLadders] {e}; using a zero-tax ladder")
        return _zero_ladder(str(e))

    try:
        cap_gains_ladder = table.get_ladder(region, jurisdiction, 'CapitalGains', status)
    except LadderNotFoundError:
        cap_gains_ladder = []

    deduction = table.get_standard_deduction(region, jurisdiction, status)
    credit = table.get_tax_credit(region, jurisdiction, status)
    if overrides:
        deduction = safe_float(overrides.custom_deductions.get(jurisdiction), deduction)
        credit = safe_float(overrides.custom_credits.get(jurisdiction), credit)

    return ResolvedLadder(income_ladder=income_ladder, cap_gains_ladder=cap_gains_ladder,
                          standard_deduction=deduction, tax_credit=credit)


def resolve_ladder(table: Optional[TaxLadderTable], jurisdiction: str, filing_status: str,
                   overrides: Optional[TaxOverrides] = None,
                   region: str = STATE_PROVINCE) -> ResolvedLadder:
    """
    Resolve the income and capital-gains ladders for one jurisdiction.

    Args:
        table: Loaded ladder table (None resolves to a zero ladder)
        jurisdiction: State/province name, or country name for the federal region
        filing_status: Profile filing status
        overrides: Remapping, custom ladder, custom deductions and credits
        region: 'State_Province' or 'Federal'

    Returns:
        ResolvedLadder; never raises for a missing ladder
    """
    custom = overrides.custom_ladder if overrides else None
    if custom is not None and custom.enabled:
        return ResolvedLadder(
            income_ladder=normalize_custom_brackets(custom.income_tax),
            cap_gains_ladder=normalize_custom_brackets(custom.capital_gains_tax),
            standard_deduction=safe_float(overrides.custom_deductions.get(jurisdiction), 0.0),
            tax_credit=safe_float(overrides.custom_credits.get(jurisdiction), 0.0),
        )
    if table is None:
        return _zero_ladder(f"No tax data loaded for '{jurisdiction}'")

    status = remap_filing_status(jurisdiction, filing_status, overrides)
    return _resolve_from_table(table, region, jurisdiction, status, overrides)


@dataclass
class TaxProfile:
    """Every ladder needed to tax one plan, resolved once per computation"""
    source: TaxLadderSource
    country: str
    jurisdiction: str
    federal: ResolvedLadder
    state: ResolvedLadder
    payroll: Dict[str, List[TaxBracket]] = field(default_factory=dict)
    warnings: ValidationWarnings = field(default_factory=dict)

    def calculate_taxes(self, wages: float, taxable_income: float,
                        inflation_multiplier: float = 1.0) -> TaxBreakdown:
        """
        Taxes for one year with brackets, deductions and credits indexed by inflation.

        Args:
            wages: Gross wages (payroll tax base)
            taxable_income: Wages less pre-tax retirement contributions
            inflation_multiplier: Cumulative inflation since year 1

        Returns:
            TaxBreakdown
        """
        m = inflation_multiplier
        federal = calculate_jurisdiction_tax(
            taxable_income, inflate_brackets(self.federal.income_ladder, m),
            self.federal.standard_deduction * m, self.federal.tax_credit * m)
        state = calculate_jurisdiction_tax(
            taxable_income, inflate_brackets(self.state.income_ladder, m),
            self.state.standard_deduction * m, self.state.tax_credit * m)
        payroll = calculate_payroll_taxes(
            wages, {name: inflate_brackets(brackets, m) for name, brackets in self.payroll.items()})
        return TaxBreakdown(federal=federal, state=state, payroll=payroll)


def _resolve_payroll(table: TaxLadderTable, country: str, filing_status: str,
                     selected: Optional[List[str]] = None) -> Dict[str, List[TaxBracket]]:
    payroll = {}
    status = to_ladder_filing_status(filing_status)
    for tax_type, name in PAYROLL_TAX_TYPES.items():
        if selected is None and tax_type not in PAYROLL_TYPES_BY_COUNTRY.get(country, []):
            continue
        if selected is not None and name not in selected:
            continue
        ladder_country = 'Canada' if tax_type in PAYROLL_TYPES_BY_COUNTRY['Canada'] else 'USA'
        try:
            payroll[name] = table.get_ladder(FEDERAL, ladder_country, tax_type, status)
        except LadderNotFoundError:
            logger.debug(f"[TaxLadders] No {tax_type} ladder for {ladder_country}")
    return payroll


def resolve_tax_profile(table: Optional[TaxLadderTable], profile: Profile,
                        overrides: Optional[TaxOverrides] = None) -> TaxProfile:
    """
    Resolve federal, state/provincial and payroll ladders for a profile.

    A custom ladder replaces the federal ladder, zeroes the state ladder and keeps
    only the payroll taxes the user selected. Missing ladders become zero ladders
    and are reported in TaxProfile.warnings.

    Args:
        table: Loaded ladder table, or None for a zero-tax profile
        profile: Profile supplying jurisdiction, country and filing status
        overrides: Optional user overrides

    Returns:
        TaxProfile
    """
    source = ladder_source(profile, overrides)
    jurisdiction = profile.location
    country = (table.country_for(jurisdiction) if table else None) or profile.country or 'USA'
    warnings: ValidationWarnings = {}

    if isinstance(source, CustomSource):
        deductions = overrides.custom_deductions if overrides else {}
        credits = overrides.custom_credits if overrides else {}
        federal = ResolvedLadder(
            income_ladder=source.income_brackets,
            cap_gains_ladder=source.capital_gains_brackets,
            standard_deduction=safe_float(deductions.get(country), 0.0),
            tax_credit=safe_float(credits.get(country), 0.0),
        )
        state = _zero_ladder()
        payroll = _resolve_payroll(table, country, profile.filing_status,
                                   source.payroll_taxes) if table else {}
    else:
        # Each jurisdiction remaps the profile's own status exactly once
        federal = resolve_ladder(table, country, profile.filing_status, overrides, region=FEDERAL)
        state = resolve_ladder(table, jurisdiction, profile.filing_status, overrides)
        payroll_status = remap_filing_status(country, profile.filing_status, overrides)
        payroll = _resolve_payroll(table, country, payroll_status) if table else {}

    if federal.warning:
        warnings['federal'] = federal.warning
    if state.warning:
        warnings['state'] = state.warning

    return TaxProfile(source=source, country=country, jurisdiction=jurisdiction,
                      federal=federal, state=state, payroll=payroll, warnings=warnings)
