from __future__ import annotations

from datetime import date

from .models.common import FinancialSnapshot, StatisticalMethod
from .models.comparables import ComparableAnalysisSettings, ComparableCompany, QualityMetrics, SelectionCriteria
from .models.precedents import (
    Acquirer,
    AcquirerType,
    ActivityLevel,
    ConsiderationStructure,
    ConsiderationType,
    DealStatus,
    MarketConditions,
    PrecedentAnalysisSettings,
    PrecedentTarget,
    PrecedentTransaction,
    TransactionFilters,
    TransactionFinancials,
    TransactionParty,
)
from .models.rpr import (
    EarlyTermination,
    ExtensionOptions,
    PerformanceTrigger,
    ReturnCap,
    ReturnFloor,
    RevenueBase,
    RevenueHurdle,
    RevenueProjection,
    RevenueScenario,
    RPRStructure,
    StepDown,
    TermStructure,
)
from .schemas import ComparableValuationRequest, PrecedentValuationRequest, RPRAnalysisRequest


SAMPLE_AS_OF = date(2024, 6, 30)


def build_sample_target() -> FinancialSnapshot:
    return FinancialSnapshot(
        revenue=100_000_000,
        ebitda=25_000_000,
        ebit=20_000_000,
        net_income=15_000_000,
        total_assets=150_000_000,
        total_debt=30_000_000,
    )


def build_sample_comparables() -> list[ComparableCompany]:
    return [
        ComparableCompany(
            name="Comparable Alpha",
            ticker="COMP1",
            sector="Technology",
            industry="Software",
            geography="North America",
            financials=FinancialSnapshot(
                revenue=120_000_000,
                ebitda=30_000_000,
                ebit=25_000_000,
                net_income=18_000_000,
                total_assets=180_000_000,
                total_debt=40_000_000,
                market_cap=300_000_000,
                enterprise_value=340_000_000,
            ),
            quality_metrics=QualityMetrics(
                liquidity_score=8,
                growth_profile=9,
                profitability_score=8,
                business_model="SaaS",
                geographic_exposure="Global",
            ),
        ),
        ComparableCompany(
            name="Comparable Beta",
            ticker="COMP2",
            sector="Technology",
            industry="Software",
            geography="North America",
            financials=FinancialSnapshot(
                revenue=95_000_000,
                ebitda=22_000_000,
                ebit=18_000_000,
                net_income=13_000_000,
                total_assets=140_000_000,
                total_debt=25_000_000,
                market_cap=260_000_000,
                enterprise_value=285_000_000,
            ),
            quality_metrics=QualityMetrics(
                liquidity_score=7,
                growth_profile=8,
                profitability_score=7,
                business_model="SaaS",
                geographic_exposure="North America",
            ),
        ),
    ]


def build_sample_comparable_request() -> ComparableValuationRequest:
    return ComparableValuationRequest(
        target=build_sample_target(),
        comparables=build_sample_comparables(),
        settings=ComparableAnalysisSettings(include_outlier_analysis=True, outlier_threshold=2.0, confidence_level=0.95),
        selection_criteria=SelectionCriteria(
            min_revenue=50_000_000,
            max_revenue=500_000_000,
            geographic_focus=["North America", "Europe"],
            minimum_liquidity_score=6,
        ),
    )


def build_sample_precedent_target() -> PrecedentTarget:
    return PrecedentTarget(
        revenue=100_000_000,
        ebitda=25_000_000,
        ebit=20_000_000,
        net_income=15_000_000,
        total_debt=30_000_000,
        cash=5_000_000,
        market_cap=300_000_000,
        enterprise_value=325_000_000,
        sector="Technology",
        industry="Software",
    )


def build_sample_transactions() -> list[PrecedentTransaction]:
    return [
        PrecedentTransaction(
            id="txn-1",
            announcement_date=date(2023, 6, 15),
            closing_date=date(2023, 9, 15),
            status=DealStatus.COMPLETED,
            target_company=TransactionParty(
                id="comp-1", name="SaaS Company Alpha", ticker="SAAS", sector="Technology", industry="Software"
            ),
            acquirer=Acquirer(id="acq-1", name="Tech Giant Corp", ticker="TECH", type=AcquirerType.STRATEGIC),
            structure=ConsiderationStructure(consideration=ConsiderationType.CASH),
            financials=TransactionFinancials(
                transaction_value=450_000_000,
                enterprise_value=450_000_000,
                equity_value=450_000_000,
                revenue=120_000_000,
                ebitda=30_000_000,
                ebit=25_000_000,
                net_income=18_000_000,
                book_value=90_000_000,
                ev_revenue=3.75,
                ev_ebitda=15.0,
                ev_ebit=18.0,
                pe_ratio=25.0,
                pb_ratio=5.0,
                premium_to_last_close=35.0,
                premium_to_20_day_avg=32.0,
                premium_to_52_week_high=-5.0,
            ),
            market_conditions=MarketConditions(
                stock_market_index=4200,
                credit_spreads=250,
                risk_free_rate=0.045,
                vix_level=18,
                industry_multiple_median=12.5,
                mna_activity_level=ActivityLevel.HIGH,
            ),
        ),
        PrecedentTransaction(
            id="txn-2",
            announcement_date=date(2023, 3, 20),
            closing_date=date(2023, 7, 20),
            status=DealStatus.COMPLETED,
            target_company=TransactionParty(
                id="comp-2", name="Enterprise Software Beta", ticker="ENTB", sector="Technology", industry="Software"
            ),
            acquirer=Acquirer(id="acq-2", name="PE Fund Alpha", type=AcquirerType.FINANCIAL),
            structure=ConsiderationStructure(
                consideration=ConsiderationType.MIXED, cash_percentage=80, stock_percentage=20
            ),
            financials=TransactionFinancials(
                transaction_value=380_000_000,
                enterprise_value=400_000_000,
                equity_value=380_000_000,
                revenue=95_000_000,
                ebitda=22_000_000,
                ebit=18_000_000,
                net_income=13_000_000,
                book_value=70_000_000,
                ev_revenue=4.21,
                ev_ebitda=18.2,
                ev_ebit=22.2,
                pe_ratio=29.2,
                pb_ratio=5.4,
                premium_to_last_close=28.0,
                premium_to_20_day_avg=25.0,
                premium_to_52_week_high=10.0,
            ),
            market_conditions=MarketConditions(
                stock_market_index=4100,
                credit_spreads=275,
                risk_free_rate=0.042,
                vix_level=22,
                industry_multiple_median=13.8,
                mna_activity_level=ActivityLevel.MEDIUM,
            ),
        ),
        PrecedentTransaction(
            id="txn-3",
            announcement_date=date(2022, 11, 2),
            status=DealStatus.WITHDRAWN,
            target_company=TransactionParty(
                id="comp-3", name="Cloud Infra Gamma", sector="Technology", industry="Infrastructure"
            ),
            acquirer=Acquirer(id="acq-3", name="Rival Holdings", type=AcquirerType.HYBRID),
            financials=TransactionFinancials(
                transaction_value=250_000_000,
                enterprise_value=270_000_000,
                equity_value=250_000_000,
                revenue=60_000_000,
                ebitda=12_000_000,
                premium_to_last_close=45.0,
            ),
            hostile=True,
        ),
    ]


def build_sample_precedent_request() -> PrecedentValuationRequest:
    return PrecedentValuationRequest(
        target=build_sample_precedent_target(),
        transactions=build_sample_transactions(),
        as_of=SAMPLE_AS_OF,
        settings=PrecedentAnalysisSettings(
            statistical_method=StatisticalMethod.MEDIAN,
            time_weighting=True,
            time_decay_factor=0.1,
            control_premium_adjustment=0.3,
            outlier_removal=True,
            outlier_threshold=2.0,
        ),
        filters=TransactionFilters(
            max_transaction_age=3,
            min_transaction_value=100_000_000,
            required_status={DealStatus.COMPLETED, DealStatus.PENDING},
            exclude_hostile_deals=True,
            acquirer_types={AcquirerType.STRATEGIC, AcquirerType.FINANCIAL},
        ),
    )


def build_sample_rpr_structure() -> RPRStructure:
    return RPRStructure(
        name="SaaS Revenue Participation Rights",
        participation_rate=0.02,
        revenue_base=RevenueBase.RECURRING,
        return_cap=ReturnCap(enabled=True, cap_multiple=3.0, cap_amount=30_000_000),
        return_floor=ReturnFloor(enabled=True, floor_rate=0.08, guaranteed_amount=800_000),
        revenue_hurdle=RevenueHurdle(enabled=True, hurdle_amount=10_000_000, catch_up_rate=0.04),
        term_structure=TermStructure(
            initial_term=7,
            extension_options=ExtensionOptions(
                number_of_extensions=1,
                extension_period=2,
                extension_conditions=["Revenue growth > 20%", "Company remains private"],
            ),
            early_termination=EarlyTermination(enabled=True, buyout_multiple=2.5, notice_period=6),
        ),
        step_downs=[
            StepDown(year=3, new_participation_rate=0.018),
            StepDown(year=5, new_participation_rate=0.015),
        ],
        performance_adjustments_enabled=True,
        performance_triggers=[
            PerformanceTrigger(revenue_growth_threshold=0.30, adjustment_factor=1.2),
            PerformanceTrigger(revenue_growth_threshold=0.50, adjustment_factor=1.5),
        ],
    )


def build_sample_projection() -> RevenueProjection:
    return RevenueProjection(
        revenues=[50_000_000, 70_000_000, 98_000_000, 127_000_000, 152_000_000, 182_000_000, 218_000_000],
        breakdown={
            RevenueBase.RECURRING: [45_000_000, 63_000_000, 88_200_000, 114_300_000, 136_800_000, 163_800_000, 196_200_000],
            RevenueBase.PRODUCT_SPECIFIC: [40_000_000, 56_000_000, 78_400_000, 101_600_000, 121_600_000, 145_600_000, 174_400_000],
        },
    )


def build_sample_rpr_request() -> RPRAnalysisRequest:
    return RPRAnalysisRequest(
        structure=build_sample_rpr_structure(),
        projection=build_sample_projection(),
        initial_investment=10_000_000,
        discount_rate=0.12,
        scenarios=[
            RevenueScenario(
                name="upside",
                probability=0.25,
                projection=RevenueProjection(
                    revenues=[55_000_000, 82_500_000, 123_750_000, 173_250_000, 224_250_000, 291_250_000, 378_625_000]
                ),
            ),
            RevenueScenario(
                name="downside",
                probability=0.25,
                projection=RevenueProjection(
                    revenues=[45_000_000, 58_500_000, 73_125_000, 87_750_000, 96_525_000, 106_175_000, 116_790_000]
                ),
            ),
            RevenueScenario(
                name="stress",
                probability=0.10,
                projection=RevenueProjection(
                    revenues=[40_000_000, 48_000_000, 52_800_000, 55_440_000, 55_440_000, 52_668_000, 47_401_200]
                ),
            ),
        ],
    )
