"""
IO utilities for saving/loading plan state.
Handles the camelCase JSON storage format used by exports and legacy share links.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from config_utils import get_default_expense_categories
from models import (
    CareerBreak, CustomLadder, ExpenseCategory, ExpenseJump, ExpensesConfig, IncomeJump,
    IncomeStream, Investment, InvestmentsDebt, OneTimeExpense, PlanState, Profile,
    PropertySettings, Retirement401k, TaxBracket, TaxOverrides
)


# Payroll selections in saved custom ladders use the ladder tax type names
PAYROLL_SELECTION_ALIASES = {
    'FICA Social Security': ['social_security'],
    'FICA Medicare': ['medicare', 'additional_medicare'],
    'FICA Medicare Additional': ['additional_medicare'],
    'CPP': ['cpp'],
    'EI': ['ei'],
}

STATE_KEYS = ['profile', 'income', 'expenses', 'investmentsDebt', 'taxes',
              'filingStatusRemapping', 'customTaxLadder', 'property']


def _safe_numeric_convert(value: Any, default: Optional[float]) -> Optional[float]:
    """Safely convert a value to a numeric type, using default if invalid"""
    try:
        return float(value) if value is not None and value != '' else default
    except (ValueError, TypeError):
        return default


def _profile_to_dict(profile: Profile) -> Dict[str, Any]:
    return {
        'location': profile.location,
        'country': profile.country,
        'filingStatus': profile.filing_status,
        'age': profile.age,
        'retirementAge': profile.retirement_age,
        'currentCash': profile.current_cash,
        'targetCash': profile.target_cash,
        'inflationRate': profile.inflation_rate,
        'currentSavings': profile.current_savings,
    }


def _profile_from_dict(data: Dict[str, Any]) -> Profile:
    defaults = Profile()
    return Profile(
        location=data.get('location') or defaults.location,
        country=data.get('country') or defaults.country,
        filing_status=data.get('filingStatus') or defaults.filing_status,
        age=data.get('age', defaults.age),
        retirement_age=data.get('retirementAge', defaults.retirement_age),
        current_cash=data.get('currentCash', 0),
        target_cash=data.get('targetCash', 0),
        inflation_rate=data.get('inflationRate', defaults.inflation_rate),
        current_savings=data.get('currentSavings', 0),
    )


def _stream_to_dict(stream: IncomeStream) -> Dict[str, Any]:
    return {
        'id': stream.id,
        'name': stream.name,
        'annualIncome': stream.annual_income,
        'growthRate': stream.growth_rate,
        'startYear': stream.start_year,
        'endWorkYear': stream.end_work_year,
        'isEndYearLinked': stream.end_year_linked,
        'individual401k': stream.individual_401k,
        'company401k': stream.company_401k,
        'equity': stream.equity,
        'jumps': [{'id': j.id, 'year': j.year, 'jumpPercent': j.jump_percent,
                   'description': j.description} for j in stream.jumps],
        'careerBreaks': [{'id': b.id, 'startYear': b.start_year,
                          'durationMonths': b.duration_months,
                          'reductionPercent': b.reduction_percent,
                          'description': b.description} for b in stream.career_breaks],
    }


def _stream_from_dict(index: int, data: Dict[str, Any]) -> IncomeStream:
    return IncomeStream(
        id=data.get('id') or f'stream-{index + 1}',
        name=data.get('name', ''),
        annual_income=data.get('annualIncome', 0),
        growth_rate=data.get('growthRate', 2.7),
        start_year=data.get('startYear', 1),
        end_work_year=data.get('endWorkYear'),
        end_year_linked=bool(data.get('isEndYearLinked', False)),
        individual_401k=data.get('individual401k', 0),
        company_401k=data.get('company401k', 0),
        equity=data.get('equity', 0),
        jumps=[IncomeJump(id=j.get('id') or f'jump-{index}-{k}', year=j.get('year', 1),
                          jump_percent=j.get('jumpPercent', 0),
                          description=j.get('description', ''))
               for k, j in enumerate(data.get('jumps') or [])],
        career_breaks=[CareerBreak(id=b.get('id') or f'break-{index}-{k}',
                                   start_year=b.get('startYear', 1),
                                   duration_months=b.get('durationMonths', 12),
                                   reduction_percent=b.get('reductionPercent', 100),
                                   description=b.get('description', ''))
                       for k, b in enumerate(data.get('careerBreaks') or [])],
    )


def _category_to_dict(category: ExpenseCategory) -> Dict[str, Any]:
    return {
        'id': category.id,
        'name': category.name,
        'amountType': category.amount_type,
        'annualAmount': category.annual_amount,
        'percentOfIncome': category.percent_of_income,
        'growthRate': category.growth_rate,
        'jumps': [{'id': j.id, 'year': j.year, 'changeType': j.change_type,
                   'changeValue': j.value, 'description': j.description} for j in category.jumps],
    }


def _category_from_dict(index: int, data: Dict[str, Any]) -> ExpenseCategory:
    return ExpenseCategory(
        id=data.get('id') or f'custom-{index}',
        name=data.get('name') or data.get('id') or f'Category {index + 1}',
        amount_type='percent' if data.get('amountType') == 'percent' else 'fixed',
        annual_amount=data.get('annualAmount', 0),
        percent_of_income=data.get('percentOfIncome', 0),
        growth_rate=data.get('growthRate'),
        jumps=[ExpenseJump(id=j.get('id') or f'exp-jump-{index}-{k}',
                           year=j.get('year', 1),
                           change_type=j.get('changeType') or j.get('type') or 'percent',
                           value=j.get('changeValue', j.get('value', 0)),
                           description=j.get('description', ''))
               for k, j in enumerate(data.get('jumps') or [])],
    )


def _expenses_to_dict(expenses: ExpensesConfig) -> Dict[str, Any]:
    return {
        'expenseCategories': [_category_to_dict(c) for c in expenses.categories],
        'oneTimeExpenses': [{'id': o.id, 'year': o.year, 'amount': o.amount,
                             'description': o.description} for o in expenses.one_time_expenses],
        'simpleMode': expenses.simple_mode,
        'totalMonthlyExpense': expenses.total_monthly_expense,
        'simpleGrowthRate': expenses.simple_growth_rate,
    }


def _expenses_from_dict(data: Dict[str, Any]) -> ExpensesConfig:
    categories = data.get('expenseCategories')
    return ExpensesConfig(
        categories=([_category_from_dict(i, c) for i, c in enumerate(categories)]
                    if categories is not None else get_default_expense_categories()),
        one_time_expenses=[OneTimeExpense(id=o.get('id') or f'ote-{i}', year=o.get('year', 1),
                                          amount=o.get('amount', 0),
                                          description=o.get('description', ''))
                           for i, o in enumerate(data.get('oneTimeExpenses') or [])],
        simple_mode=bool(data.get('simpleMode', False)),
        total_monthly_expense=data.get('totalMonthlyExpense', 0),
        simple_growth_rate=data.get('simpleGrowthRate', 3.0),
    )


def _investments_to_dict(investments_debt: InvestmentsDebt) -> Dict[str, Any]:
    retirement = investments_debt.retirement_401k
    return {
        'currentCash': investments_debt.current_cash,
        'targetCash': investments_debt.target_cash,
        'retirement401k': {
            'currentValue': retirement.current_value,
            'growthRate': retirement.growth_rate,
            'individualLimit': retirement.individual_limit,
            'limitGrowth': retirement.limit_growth,
            'companyContribution': retirement.company_contribution,
        },
        'investments': [{'id': inv.id, 'name': inv.name, 'currentValue': inv.current_value,
                         'costBasis': inv.cost_basis, 'growthRate': inv.growth_rate,
                         'portfolioPercent': inv.portfolio_percent}
                        for inv in investments_debt.investments],
    }


def _investments_from_dict(data: Dict[str, Any]) -> InvestmentsDebt:
    retirement = data.get('retirement401k') or {}
    return InvestmentsDebt(
        current_cash=data.get('currentCash', 0),
        target_cash=data.get('targetCash', 0),
        retirement_401k=Retirement401k(
            current_value=retirement.get('currentValue', 0),
            growth_rate=retirement.get('growthRate', 7.0),
            individual_limit=retirement.get('individualLimit', 23_500),
            limit_growth=retirement.get('limitGrowth', 3.0),
            company_contribution=retirement.get('companyContribution', 0),
        ),
        investments=[Investment(id=inv.get('id') or f'inv-{i + 1}', name=inv.get('name', ''),
                                current_value=inv.get('currentValue', 0),
                                cost_basis=inv.get('costBasis'),
                                growth_rate=inv.get('growthRate', 7.0),
                                portfolio_percent=inv.get('portfolioPercent', 0))
                     for i, inv in enumerate(data.get('investments') or [])],
    )


def _brackets_from_list(brackets: List[Any]) -> List[TaxBracket]:
    result = []
    for bracket in brackets or []:
        if isinstance(bracket, dict):
            result.append(TaxBracket(
                min=_safe_numeric_convert(bracket.get('min'), 0.0),
                max=_safe_numeric_convert(bracket.get('max'), TaxBracket().max),
                rate=_safe_numeric_convert(bracket.get('rate'), 0.0)))
        else:
            low, rate = bracket[0], bracket[1]
            result.append(TaxBracket(min=_safe_numeric_convert(low, 0.0),
                                     rate=_safe_numeric_convert(rate, 0.0)))
    return result


def _payroll_selection(names: List[str]) -> List[str]:
    selected = []
    for name in names or []:
        for alias in PAYROLL_SELECTION_ALIASES.get(name, [name]):
            if alias not in selected:
                selected.append(alias)
    return selected


def custom_ladder_from_dict(data: Optional[Dict[str, Any]]) -> Optional[CustomLadder]:
    """
    Build a CustomLadder from its saved object form.

    Args:
        data: Object with enabled, incomeTax, capitalGainsTax and payrollTaxes

    Returns:
        CustomLadder, or None when data is empty
    """
    if not data:
        return None
    return CustomLadder(
        enabled=bool(data.get('enabled', False)),
        income_tax=_brackets_from_list(data.get('incomeTax')),
        capital_gains_tax=_brackets_from_list(data.get('capitalGainsTax')),
        payroll_taxes=_payroll_selection(data.get('payrollTaxes')),
    )


def custom_ladder_to_dict(ladder: Optional[CustomLadder]) -> Optional[Dict[str, Any]]:
    if ladder is None:
        return None
    return {
        'enabled': ladder.enabled,
        'incomeTax': [{'min': b.min, 'max': b.max, 'rate': b.rate} for b in ladder.income_tax],
        'capitalGainsTax': [{'min': b.min, 'max': b.max, 'rate': b.rate}
                            for b in ladder.capital_gains_tax],
        'payrollTaxes': list(ladder.payroll_taxes),
    }


def state_to_dict(state: PlanState) -> Dict[str, Any]:
    """
    Convert a PlanState to the camelCase storage dictionary.

    Args:
        state: Plan state

    Returns:
        JSON-serializable dictionary
    """
    overrides = state.tax_overrides
    return {
        'profile': _profile_to_dict(state.profile),
        'income': {'incomeStreams': [_stream_to_dict(s) for s in state.income_streams]},
        'expenses': _expenses_to_dict(state.expenses),
        'investmentsDebt': _investments_to_dict(state.investments_debt),
        'filingStatusRemapping': overrides.filing_status_remapping,
        'customTaxLadder': custom_ladder_to_dict(overrides.custom_ladder),
        'customStandardDeductions': overrides.custom_deductions,
        'customTaxCredits': overrides.custom_credits,
        'property': {'mode': state.property.mode, 'details': state.property.details},
    }


def state_from_dict(data: Dict[str, Any]) -> PlanState:
    """
    Convert a camelCase storage dictionary back to a PlanState.

    Missing sections fall back to defaults; a bare list of income streams under
    'income' is accepted as well as the {'incomeStreams': [...]} form.

    Args:
        data: Dictionary in storage format

    Returns:
        PlanState
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected an object, got {type(data).__name__}")

    income = data.get('income') or {}
    streams = income if isinstance(income, list) else income.get('incomeStreams') or []
    taxes = data.get('taxes') or {}
    prop = data.get('property') or {}

    return PlanState(
        profile=_profile_from_dict(data.get('profile') or {}),
        income_streams=[_stream_from_dict(i, s) for i, s in enumerate(streams)],
        expenses=_expenses_from_dict(data.get('expenses') or {}),
        investments_debt=_investments_from_dict(data.get('investmentsDebt') or {}),
        tax_overrides=TaxOverrides(
            filing_status_remapping=(data.get('filingStatusRemapping')
                                     or taxes.get('filingStatusRemapping') or {}),
            custom_ladder=custom_ladder_from_dict(data.get('customTaxLadder')
                                                  or taxes.get('customTaxLadder')),
            custom_deductions=(data.get('customStandardDeductions')
                               or taxes.get('customStandardDeductions') or {}),
            custom_credits=(data.get('customTaxCredits')
                            or taxes.get('customTaxCredits') or {}),
        ),
        property=PropertySettings(mode=prop.get('mode') or 'none',
                                  details=dict(prop.get('details') or {})),
    )


def save_state_json(state: PlanState, filepath: str) -> None:
    """
    Save plan state to JSON file.

    Args:
        state: PlanState to save
        filepath: Path to save JSON file
    """
    with open(filepath, 'w') as f:
        json.dump(state_to_dict(state), f, indent=2)


def load_state_json(filepath: str) -> PlanState:
    """
    Load plan state from JSON file.

    Args:
        filepath: Path to JSON file

    Returns:
        PlanState object
    """
    with open(filepath, 'r') as f:
        data = json.load(f)

    return state_from_dict(data)


def create_state_download_json(state: PlanState) -> str:
    return json.dumps(state_to_dict(state), indent=2)


def parse_state_upload_json(json_string: str) -> PlanState:
    """
    Parse uploaded JSON string to PlanState.

    Args:
        json_string: JSON string in storage format

    Returns:
        PlanState object
    """
    return state_from_dict(json.loads(json_string))


def validate_state_json(json_string: str) -> Tuple[bool, str]:
    """
    Validate uploaded state JSON.

    Args:
        json_string: JSON string to validate

    Returns:
        (is_valid, error_message)
    """
    try:
        data = json.loads(json_string)
    except json.JSONDecodeError as e:
        return False, f"Invalid JSON: {str(e)}"

    if not isinstance(data, dict):
        return False, "Top level must be an object"

    if not any(key in data for key in STATE_KEYS):
        return False, "JSON file does not contain plan data"

    profile = data.get('profile') or {}
    if not isinstance(profile, dict):
        return False, "Profile must be an object"
    age = _safe_numeric_convert(profile.get('age'), 30)
    retirement_age = _safe_numeric_convert(profile.get('retirementAge'), 65)
    if age is None or age <= 0:
        return False, "Age must be positive"
    if retirement_age is None or retirement_age <= age:
        return False, "Retirement age must be greater than current age"

    try:
        state_from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        return False, f"State validation error: {str(e)}"

    return True, ""


def format_currency(value: float, precision: int = 0) -> str:
    """
    Format currency values for display.

    Args:
        value: Numeric value to format
        precision: Number of decimal places

    Returns:
        Formatted string
    """
    sign = '-' if value < 0 else ''
    value = abs(value)
    if value >= 1_000_000:
        return f"{sign}${value/1_000_000:.{precision}f}M"
    elif value >= 1_000:
        return f"{sign}${value/1_000:.{precision}f}K"
    return f"{sign}${value:.{precision}f}"
