"""
Configuration utilities for the financial plan projector.
Default values, static dictionaries shared by the state codec, and app config loading.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Any, List, Optional

from models import (
    ExpenseCategory, ExpensesConfig, IncomeStream, InvestmentsDebt, PlanState, Profile,
    Retirement401k
)


logger = logging.getLogger(__name__)

APP_CONFIG_FILE = 'planner_config.json'
DATA_DIR = Path(__file__).resolve().parent / 'data'

INCOME_CONFIG = {
    'max_streams': 3,
    'min_streams': 1,
    'default_growth': 2.7,
    'max_reasonable_growth': 50,
}

RETIREMENT_401K_CONFIG = {
    'individual_limit': 23_500,
    'limit_growth': 3.0,
    'default_growth': 7.0,
}

INVESTMENT_CONFIG = {
    'max_investments': 3,
    'default_growth': 7.0,
}

# Codec dictionaries: positions are part of the share-link format, append only
COUNTRIES = ['USA', 'Canada']

FILING_STATUSES = [
    'Single', 'Married', 'Head of Household', 'Married Filing Separately',
    'Qualifying Widow(er)'
]

JURISDICTIONS = sorted([
    'Alabama', 'Alaska', 'Arizona', 'Arkansas', 'California', 'Colorado', 'Connecticut',
    'Delaware', 'District of Columbia', 'Florida', 'Georgia', 'Hawaii', 'Idaho', 'Illinois',
    'Indiana', 'Iowa', 'Kansas', 'Kentucky', 'Louisiana', 'Maine', 'Maryland',
    'Massachusetts', 'Michigan', 'Minnesota', 'Mississippi', 'Missouri', 'Montana',
    'Nebraska', 'Nevada', 'New Hampshire', 'New Jersey', 'New Mexico', 'New York',
    'North Carolina', 'North Dakota', 'Ohio', 'Oklahoma', 'Oregon', 'Pennsylvania',
    'Rhode Island', 'South Carolina', 'South Dakota', 'Tennessee', 'Texas', 'Utah',
    'Vermont', 'Virginia', 'Washington', 'West Virginia', 'Wisconsin', 'Wyoming',
    'Alberta', 'British Columbia', 'Manitoba', 'New Brunswick',
    'Newfoundland and Labrador', 'Northwest Territories', 'Nova Scotia', 'Nunavut',
    'Ontario', 'Prince Edward Island', 'Quebec', 'Saskatchewan', 'Yukon',
])

PROPERTY_MODES = ['none', 'own', 'buy']

EXPENSE_JUMP_TYPES = ['percent', 'dollar', 'percentOfIncome', 'setAmountPV']

# id, display name, suggested percent of income
DEFAULT_EXPENSE_CATEGORIES = [
    {'id': 'housing', 'name': 'Housing', 'default_percent': 22},
    {'id': 'utilities', 'name': 'Utilities', 'default_percent': 3},
    {'id': 'transportation', 'name': 'Transportation', 'default_percent': 7},
    {'id': 'medical', 'name': 'Medical', 'default_percent': 3},
    {'id': 'food', 'name': 'Food', 'default_percent': 12},
    {'id': 'entertainment', 'name': 'Entertainment', 'default_percent': 8},
    {'id': 'childcare', 'name': 'Childcare', 'default_percent': 0},
    {'id': 'education', 'name': 'Education', 'default_percent': 0},
    {'id': 'other', 'name': 'Other', 'default_percent': 0},
]

DEFAULT_EXPENSE_CATEGORY_IDS = [c['id'] for c in DEFAULT_EXPENSE_CATEGORIES]


def get_default_app_config() -> Dict[str, Any]:
    """Get default application configuration"""
    return {
        'tax_data_dir': str(DATA_DIR),
        'tax_ladders_file': 'tax_ladders.csv',
        'standard_deductions_file': 'standard_deductions.csv',
        'tax_credits_file': 'tax_credits.csv',
        'default_inflation_rate': 2.7,
        'log_level': 'WARNING',
    }


def load_app_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load application configuration merged over the defaults.

    Reads planner_config.json (or the given path) when present, then applies
    PLANNER_TAX_DATA_DIR and PLANNER_LOG_LEVEL environment overrides.

    Args:
        path: Optional explicit config file path

    Returns:
        Configuration dictionary
    """
    config = get_default_app_config()
    config_path = Path(path) if path else Path(APP_CONFIG_FILE)

    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
            if isinstance(file_config, dict):
                config.update(file_config)
                logger.debug(f"[Config] Loaded {len(file_config)} keys from {config_path}")
            else:
                logger.warning(f"[Config] Ignoring {config_path}: top level is not an object")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[Config] Could not load {config_path}: {e}")

    if os.environ.get('PLANNER_TAX_DATA_DIR'):
        config['tax_data_dir'] = os.environ['PLANNER_TAX_DATA_DIR']
    if os.environ.get('PLANNER_LOG_LEVEL'):
        config['log_level'] = os.environ['PLANNER_LOG_LEVEL']

    return config


def save_app_config(config: Dict[str, Any], path: Optional[str] = None) -> None:
    """Save application configuration to planner_config.json"""
    config_path = Path(path) if path else Path(APP_CONFIG_FILE)
    try:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)
        logger.debug(f"[Config] Saved config to {config_path}")
    except OSError as e:
        logger.error(f"[Config] Could not save {config_path}: {e}")


def configure_logging(level: str = 'WARNING') -> None:
    """Install a basic logging format at the given level"""
    numeric_level = getattr(logging, str(level).upper(), logging.WARNING)
    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logging.getLogger().setLevel(numeric_level)


def get_default_expense_categories() -> List[ExpenseCategory]:
    """Blank percent-of-income categories for every default category id"""
    return [
        ExpenseCategory(id=c['id'], name=c['name'], amount_type='percent',
                        percent_of_income=0.0)
        for c in DEFAULT_EXPENSE_CATEGORIES
    ]


def get_default_state() -> PlanState:
    """Get a fresh default plan state (one empty income stream, default categories)"""
    return PlanState(
        profile=Profile(),
        income_streams=[IncomeStream(id='stream-1', name='Primary Income',
                                     growth_rate=INCOME_CONFIG['default_growth'],
                                     end_year_linked=True)],
        expenses=ExpensesConfig(categories=get_default_expense_categories()),
        investments_debt=InvestmentsDebt(retirement_401k=Retirement401k(
            growth_rate=RETIREMENT_401K_CONFIG['default_growth'],
            individual_limit=RETIREMENT_401K_CONFIG['individual_limit'],
            limit_growth=RETIREMENT_401K_CONFIG['limit_growth'],
        )),
    )
