"""
Data model for the financial plan projector.
Dataclasses for user-entered plan state plus the shared error types.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


MONTHS = 1200
HORIZON_YEARS = 100
NO_LIMIT = 99_999_999
DEFAULT_YEARS_TO_RETIREMENT = 30

# Field-keyed validation messages; never raised, always returned
ValidationWarnings = Dict[str, str]


class LadderNotFoundError(LookupError):
    """No tax ladder exists for a jurisdiction / tax type / filing status"""

    def __init__(self, jurisdiction: str, tax_type: str, filing_status: str):
        self.jurisdiction = jurisdiction
        self.tax_type = tax_type
        self.filing_status = filing_status
        super().__init__(
            f"No {tax_type} ladder for jurisdiction '{jurisdiction}' ({filing_status})")


class CodecError(ValueError):
    """A compact state payload could not be decoded"""


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert a value to float, using default if invalid or blank"""
    if value is None or value == '' or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if result != result:  # NaN
        return default
    return result


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert a value to int (floats are truncated)"""
    result = safe_float(value, None)
    if result is None or result in (float('inf'), float('-inf')):
        return default
    return int(result)


def _coerce_fields(obj: Any, defaults: Dict[str, Any]) -> None:
    for name, default in defaults.items():
        value = getattr(obj, name)
        if isinstance(default, int):
            setattr(obj, name, safe_int(value, default))
        else:
            setattr(obj, name, safe_float(value, default))


@dataclass
class Profile:
    """Personal details that drive every projection"""
    location: str = 'California'
    country: str = 'USA'
    filing_status: str = 'Single'
    age: int = 30
    retirement_age: int = 65
    current_cash: float = 0.0
    target_cash: float = 0.0
    inflation_rate: float = 2.7  # percent
    current_savings: float = 0.0

    def __post_init__(self):
        _coerce_fields(self, {
            'age': 30, 'retirement_age': 65, 'current_cash': 0.0,
            'target_cash': 0.0, 'inflation_rate': 2.7, 'current_savings': 0.0,
        })

    @property
    def years_to_retirement(self) -> int:
        years = self.retirement_age - self.age
        if years <= 0:
            return DEFAULT_YEARS_TO_RETIREMENT
        return min(years, HORIZON_YEARS)

    def discount_factor(self, year: int) -> float:
        """Cumulative inflation factor used to bring year's nominal dollars to today"""
        return (1 + self.inflation_rate / 100) ** (year - 1)


@dataclass
class IncomeJump:
    year: int = 1
    jump_percent: float = 0.0
    description: str = ''
    id: str = ''

    def __post_init__(self):
        _coerce_fields(self, {'year': 1, 'jump_percent': 0.0})


@dataclass
class CareerBreak:
    start_year: int = 1
    duration_months: int = 12
    reduction_percent: float = 100.0
    description: str = ''
    id: str = ''

    def __post_init__(self):
        _coerce_fields(self, {'start_year': 1, 'duration_months': 12,
                              'reduction_percent': 100.0})


@dataclass
class IncomeStream:
    """One salaried income source with its growth, jumps and breaks"""
    id: str = 'stream-1'
    name: str = 'Primary Income'
    annual_income: float = 0.0
    growth_rate: float = 2.7
    start_year: int = 1
    end_work_year: Optional[int] = None  # None or 0 means "until retirement"
    end_year_linked: bool = False
    individual_401k: float = 0.0
    company_401k: float = 0.0
    equity: float = 0.0
    jumps: List[IncomeJump] = field(default_factory=list)
    career_breaks: List[CareerBreak] = field(default_factory=list)

    def __post_init__(self):
        _coerce_fields(self, {
            'annual_income': 0.0, 'growth_rate': 2.7, 'start_year': 1,
            'individual_401k': 0.0, 'company_401k': 0.0, 'equity': 0.0,
        })
        if self.end_work_year is not None:
            self.end_work_year = safe_int(self.end_work_year, 0) or None

    def effective_end_year(self, years_to_retirement: int) -> int:
        if self.end_year_linked or not self.end_work_year:
            return years_to_retirement
        return self.end_work_year


@dataclass
class ExpenseJump:
    """Step change to an expense category.

    change_type is one of 'percent', 'dollar', 'percentOfIncome' or 'setAmountPV'.
    """
    year: int = 1
    change_type: str = 'percent'
    value: float = 0.0
    description: str = ''
    id: str = ''

    def __post_init__(self):
        _coerce_fields(self, {'year': 1, 'value': 0.0})


@dataclass
class ExpenseCategory:
    id: str = 'other'
    name: str = 'Other'
    amount_type: str = 'fixed'  # 'fixed' or 'percent'
    annual_amount: float = 0.0
    percent_of_income: float = 0.0
    growth_rate: Optional[float] = None  # None follows the profile inflation rate
    jumps: List[ExpenseJump] = field(default_factory=list)

    def __post_init__(self):
        _coerce_fields(self, {'annual_amount': 0.0, 'percent_of_income': 0.0})
        if self.growth_rate is not None:
            self.growth_rate = safe_float(self.growth_rate, None)

    @property
    def is_percent(self) -> bool:
        return self.amount_type == 'percent'


@dataclass
class OneTimeExpense:
    year: int = 1
    amount: float = 0.0  # today's dollars
    description: str = ''
    id: str = ''

    def __post_init__(self):
        _coerce_fields(self, {'year': 1, 'amount': 0.0})


@dataclass
class ExpensesConfig:
    categories: List[ExpenseCategory] = field(default_factory=list)
    one_time_expenses: List[OneTimeExpense] = field(default_factory=list)
    simple_mode: bool = False
    total_monthly_expense: float = 0.0
    simple_growth_rate: float = 3.0

    def __post_init__(self):
        _coerce_fields(self, {'total_monthly_expense': 0.0, 'simple_growth_rate': 3.0})


@dataclass
class Retirement401k:
    current_value: float = 0.0
    growth_rate: float = 7.0
    individual_limit: float = 23_500
    limit_growth: float = 3.0
    company_contribution: float = 0.0

    def __post_init__(self):
        _coerce_fields(self, {
            'current_value': 0.0, 'growth_rate': 7.0, 'individual_limit': 23_500.0,
            'limit_growth': 3.0, 'company_contribution': 0.0,
        })

    def limit_for_year(self, year: int) -> float:
        return self.individual_limit * (1 + self.limit_growth / 100) ** (year - 1)


@dataclass
class Investment:
    id: str = 'inv-1'
    name: str = ''
    current_value: float = 0.0
    cost_basis: Optional[float] = None  # None means equal to current value
    growth_rate: float = 7.0
    portfolio_percent: float = 0.0

    def __post_init__(self):
        _coerce_fields(self, {'current_value': 0.0, 'growth_rate': 7.0,
                              'portfolio_percent': 0.0})
        if self.cost_basis is not None:
            self.cost_basis = safe_float(self.cost_basis, None)

    @property
    def effective_cost_basis(self) -> float:
        return self.current_value if self.cost_basis is None else self.cost_basis


@dataclass
class InvestmentsDebt:
    current_cash: float = 0.0
    target_cash: float = 0.0
    retirement_401k: Retirement401k = field(default_factory=Retirement401k)
    investments: List[Investment] = field(default_factory=list)

    def __post_init__(self):
        _coerce_fields(self, {'current_cash': 0.0, 'target_cash': 0.0})


@dataclass
class TaxBracket:
    min: float = 0.0
    max: float = NO_LIMIT
    rate: float = 0.0  # fraction, not percent


@dataclass
class CustomLadder:
    """User-entered brackets that replace the resolved jurisdiction ladder"""
    enabled: bool = False
    income_tax: List[TaxBracket] = field(default_factory=list)
    capital_gains_tax: List[TaxBracket] = field(default_factory=list)
    payroll_taxes: List[str] = field(default_factory=list)


@dataclass
class TaxOverrides:
    filing_status_remapping: Dict[str, Dict[str, str]] = field(default_factory=dict)
    custom_ladder: Optional[CustomLadder] = None
    custom_deductions: Dict[str, float] = field(default_factory=dict)
    custom_credits: Dict[str, float] = field(default_factory=dict)


@dataclass
class PropertySettings:
    """Property inputs; home equity is computed elsewhere and only consumed here"""
    mode: str = 'none'  # 'none', 'own' or 'buy'
    details: Dict[str, Any] = field(default_factory=dict)
    home_equity: Optional[List[float]] = None  # nominal, one value per projection year

    def equity_for_year(self, year: int) -> float:
        if self.mode == 'none' or not self.home_equity:
            return 0.0
        if 1 <= year <= len(self.home_equity):
            return safe_float(self.home_equity[year - 1], 0.0)
        return 0.0


@dataclass
class PlanState:
    """Complete user-entered state for one scenario"""
    profile: Profile = field(default_factory=Profile)
    income_streams: List[IncomeStream] = field(default_factory=list)
    expenses: ExpensesConfig = field(default_factory=ExpensesConfig)
    investments_debt: InvestmentsDebt = field(default_factory=InvestmentsDebt)
    tax_overrides: TaxOverrides = field(default_factory=TaxOverrides)
    property: PropertySettings = field(default_factory=PropertySettings)


def validate_profile(profile: Profile) -> ValidationWarnings:
    """
    Validate personal details.

    Args:
        profile: Profile to check

    Returns:
        Field-keyed warning messages (empty when valid)
    """
    warnings: ValidationWarnings = {}

    if not profile.location:
        warnings['location'] = 'Location is required'
    if profile.age <= 0 or profile.age > 120:
        warnings['age'] = 'Age must be between 1 and 120'
    if profile.retirement_age <= profile.age:
        warnings['retirement_age'] = 'Retirement age must be greater than current age'
    elif profile.retirement_age - profile.age > HORIZON_YEARS:
        warnings['retirement_age'] = f'Retirement is more than {HORIZON_YEARS} years away'
    if profile.inflation_rate < 0 or profile.inflation_rate > 20:
        warnings['inflation_rate'] = 'Inflation rate should be between 0% and 20%'
    if profile.current_cash < 0:
        warnings['current_cash'] = 'Current cash cannot be negative'
    if profile.target_cash < 0:
        warnings['target_cash'] = 'Target cash cannot be negative'

    return warnings
