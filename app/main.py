"""
Streamlit Frontend for FinBuddy

The everyday interface: log expenses, track goals and bills, see net
worth, collect achievements and ask the AI advisors.

DESIGN PRINCIPLES:
1. Every action gives visible feedback (a toast per notification)
2. Nothing happens without an explicit button press
3. Errors are shown in plain language, never as tracebacks
4. The app reads and writes only the signed-in user's rows

Each browser session keeps its own stores and notifier in
st.session_state. Components (storage, advisors, gateway) are shared.
"""

import asyncio
import base64
from datetime import date

import streamlit as st

from finbuddy.config import get_settings, validate_all_settings
from finbuddy.gamification import ACHIEVEMENTS, progress_towards
from finbuddy.models.records import BillFrequency, IncomeFrequency
from finbuddy.orchestrator import UserStores, create_app_components
from finbuddy.queries import format_inr, group_totals
from finbuddy.services.auth import AuthenticationError
from finbuddy.services.llm import (
    LLMServiceError,
    PaymentRequiredError,
    RateLimitedError,
    stream_text,
)
from finbuddy.services.speech import SpeechServiceError
from finbuddy.services.storage import StorageError
from finbuddy.stores import NotificationVariant


# Page configuration
st.set_page_config(
    page_title="FinBuddy",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


ADVISOR_LABELS = {
    "budget-optimizer": "💡 Budget Optimizer",
    "tax-optimizer": "🧾 Tax Optimizer",
    "retirement-planner": "🏖️ Retirement Planner",
    "debt-analyzer": "💳 Debt Analyzer",
    "net-worth-calculator": "📈 Net Worth Analysis",
    "income-forecast": "🔮 Income Forecast",
    "spending-insights": "🔍 Spending Insights",
    "financial-health": "❤️ Financial Health",
    "portfolio-analysis": "📊 Portfolio Analysis",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def current_user_id(components):
    """Resolve the user from the sidebar token, or the local user."""
    settings = get_settings().app
    token = st.sidebar.text_input("Access token", type="password")
    if token:
        try:
            return components.verifier.verify(f"Bearer {token}").user_id
        except AuthenticationError as e:
            st.sidebar.error(f"Sign-in failed: {e}")
            return None
    if settings.storage_backend == "memory":
        return settings.local_user_id
    st.sidebar.info("Paste your access token to sign in.")
    return None


def get_stores(components, user_id) -> UserStores:
    """
    Per-session stores for the user, loaded once.

    The change feed holds the stores weakly, so when Streamlit drops an
    abandoned session's state its subscriptions lapse with it.
    """
    stores = st.session_state.get("stores")
    if stores is not None and st.session_state.get("stores_user") == user_id:
        return stores
    if stores is not None:
        stores.close()

    stores = components.stores_for(user_id)
    run_async(stores.fetch_all())
    stores.start()
    st.session_state.stores = stores
    st.session_state.stores_user = user_id
    return stores


def show_notifications(stores: UserStores):
    """Flush queued notifications as toasts."""
    for n in stores.notifier.drain():
        icon = "⚠️" if n.is_error else "🎉" if n.variant == NotificationVariant.CELEBRATION else "✅"
        st.toast(f"**{n.title}**  \n{n.message}", icon=icon)


def main():
    """Main application entry point."""
    try:
        components = get_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        st.stop()

    st.sidebar.title("💰 FinBuddy")
    st.sidebar.markdown("---")

    user_id = current_user_id(components)
    if user_id is None:
        render_settings_page()
        return

    stores = get_stores(components, user_id)

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🏠 Dashboard",
            "🎯 Goals",
            "🧾 Bills",
            "📈 Net Worth",
            "🏆 Achievements",
            "🤖 Advisors",
            "💬 Chat",
            "⚙️ Settings",
        ],
        index=0,
    )

    if page == "🏠 Dashboard":
        render_dashboard_page(stores)
    elif page == "🎯 Goals":
        render_goals_page(stores)
    elif page == "🧾 Bills":
        render_bills_page(stores)
    elif page == "📈 Net Worth":
        render_net_worth_page(stores)
    elif page == "🏆 Achievements":
        render_achievements_page(stores)
    elif page == "🤖 Advisors":
        render_advisors_page(components, user_id)
    elif page == "💬 Chat":
        render_chat_page(components, user_id)
    elif page == "⚙️ Settings":
        render_settings_page()

    show_notifications(stores)


def render_dashboard_page(stores: UserStores):
    """Expenses, salary and the headline numbers."""
    st.title("🏠 Dashboard")

    stats = stores.stats.stats
    level = stores.stats.level
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Spent", format_inr(stores.expenses.total))
    col2.metric("Monthly Income", format_inr(
        stores.profile.monthly_salary + stores.income_sources.monthly_total
    ))
    col3.metric("Streak", f"{stats.current_streak if stats else 0} days")
    col4.metric("Level", f"{level.tier.level} · {level.tier.name}")

    st.markdown("---")
    st.subheader("➕ Add Expense")
    categories = stores.categories.all_categories
    with st.form("add_expense", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            category = st.selectbox(
                "Category *",
                options=[c.name for c in categories],
                format_func=lambda name: next(
                    f"{c.icon} {c.name}" for c in categories if c.name == name
                ),
            )
            amount = st.number_input("Amount (₹) *", min_value=0.0, step=10.0, format="%.2f")
        with col2:
            spent_on = st.date_input("Date", value=date.today())
            description = st.text_input("Description (optional)")
        if st.form_submit_button("Add Expense", type="primary"):
            if amount <= 0:
                st.warning("Please enter an amount greater than zero.")
            else:
                run_async(stores.expenses.add(category, amount, spent_on, description))
                run_async(stores.stats.fetch())

    with st.expander("🏷️ Custom Categories"):
        with st.form("add_category", clear_on_submit=True):
            name = st.text_input("Category name")
            icon = st.text_input("Icon", value="📝", max_chars=4)
            if st.form_submit_button("Add Category") and name.strip():
                run_async(stores.categories.add(name, icon))
        for custom in stores.categories.items:
            col1, col2 = st.columns([4, 1])
            col1.write(f"{custom.icon} {custom.name}")
            if col2.button("Delete", key=f"del_cat_{custom.id}"):
                run_async(stores.categories.remove(custom.id))
                st.rerun()

    with st.expander("💼 Salary & Other Income"):
        salary = st.number_input(
            "Annual salary (₹)",
            min_value=0.0,
            value=float(stores.profile.annual_salary),
            step=10000.0,
        )
        if st.button("Save Salary"):
            run_async(stores.profile.update_salary(salary))
        with st.form("add_income", clear_on_submit=True):
            income_type = st.text_input("Income type (e.g. Rent, Freelance)")
            income_amount = st.number_input("Amount (₹)", min_value=0.0, step=500.0)
            frequency = st.selectbox(
                "Frequency",
                options=list(IncomeFrequency),
                format_func=lambda f: f.value.title(),
            )
            if st.form_submit_button("Add Income Source") and income_type.strip():
                run_async(stores.income_sources.add(income_type, income_amount, frequency))
        for source in stores.income_sources.items:
            col1, col2 = st.columns([4, 1])
            col1.write(
                f"{source.income_type}: {format_inr(source.amount)} "
                f"({source.frequency.value}) → {format_inr(source.monthly_amount)}/month"
            )
            if col2.button("Delete", key=f"del_income_{source.id}"):
                run_async(stores.income_sources.remove(source.id))
                st.rerun()

    st.markdown("---")
    st.subheader("📋 Recent Expenses")
    expenses = stores.expenses.items
    if not expenses:
        st.info("No expenses yet. Add your first one above!")
        return

    by_category = group_totals(expenses, key=lambda e: e.category)
    st.bar_chart(by_category)

    for expense in expenses[:30]:
        col1, col2, col3, col4 = st.columns([2, 2, 3, 1])
        col1.write(expense.date.strftime("%d %b %Y"))
        col2.write(f"**{expense.category}**")
        col3.write(f"{format_inr(expense.amount)} {expense.description or ''}")
        if col4.button("🗑️", key=f"del_exp_{expense.id}"):
            run_async(stores.expenses.remove(expense.id))
            st.rerun()


def render_goals_page(stores: UserStores):
    """Savings goals with milestone celebrations."""
    st.title("🎯 Goals")

    with st.form("add_goal", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            title = st.text_input("Goal *", placeholder="Emergency fund")
            target = st.number_input("Target (₹) *", min_value=0.0, step=1000.0)
        with col2:
            category = st.text_input("Category (optional)")
            target_date = st.date_input("Target date (optional)", value=None)
        if st.form_submit_button("Create Goal", type="primary"):
            if not title.strip() or target <= 0:
                st.warning("A goal needs a name and a target above zero.")
            else:
                run_async(stores.goals.add(title, target, category or None, target_date))

    st.markdown("---")
    if not stores.goals.items:
        st.info("No goals yet. Create one above to start saving!")
        return

    for goal in stores.goals.items:
        with st.container(border=True):
            col1, col2 = st.columns([3, 2])
            with col1:
                badge = " ✅" if goal.is_completed else ""
                st.markdown(f"### {goal.title}{badge}")
                st.progress(min(goal.progress_percent, 100.0) / 100)
                st.caption(
                    f"{format_inr(goal.current_amount)} of {format_inr(goal.target_amount)} "
                    f"({goal.progress_percent:.0f}%)"
                )
            with col2:
                amount = st.number_input(
                    "Add savings (₹)",
                    min_value=0.0,
                    step=500.0,
                    key=f"contrib_{goal.id}",
                )
                if st.button("Add", key=f"add_{goal.id}") and amount > 0:
                    run_async(stores.goals.contribute(goal.id, amount))
                    run_async(stores.stats.fetch())
                    run_async(stores.achievements.fetch())
                    st.rerun()
                if st.button("Delete", key=f"del_goal_{goal.id}"):
                    run_async(stores.goals.remove(goal.id))
                    st.rerun()


def render_bills_page(stores: UserStores):
    """Bill reminders."""
    st.title("🧾 Bills")

    reminder_days = get_settings().app.bill_reminder_days
    for bill in stores.bills.overdue():
        st.error(f"Overdue: {bill.title} ({format_inr(bill.amount)}) was due {bill.due_date:%d %b}")
    for bill in stores.bills.upcoming(within_days=reminder_days):
        st.warning(f"Due soon: {bill.title} ({format_inr(bill.amount)}) on {bill.due_date:%d %b}")

    with st.form("add_bill", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            title = st.text_input("Bill *", placeholder="Electricity")
            amount = st.number_input("Amount (₹) *", min_value=0.0, step=100.0)
        with col2:
            due_date = st.date_input("Due date *", value=date.today())
            frequency = st.selectbox(
                "Repeats",
                options=list(BillFrequency),
                format_func=lambda f: f.value.replace("_", " ").title(),
            )
        category = st.text_input("Category (optional)")
        if st.form_submit_button("Add Bill", type="primary") and title.strip():
            run_async(stores.bills.add(title, amount, due_date, frequency, category or None))

    st.markdown("---")
    if not stores.bills.items:
        st.info("No bill reminders yet.")
        return

    for bill in stores.bills.items:
        col1, col2, col3, col4 = st.columns([3, 2, 1, 1])
        col1.write(f"**{bill.title}** · {bill.frequency.value}")
        col2.write(f"{format_inr(bill.amount)} due {bill.due_date:%d %b %Y}")
        if bill.is_paid:
            col3.write("✅ Paid")
        elif col3.button("Paid", key=f"paid_{bill.id}"):
            run_async(stores.bills.mark_paid(bill.id))
            st.rerun()
        if col4.button("🗑️", key=f"del_bill_{bill.id}"):
            run_async(stores.bills.remove(bill.id))
            st.rerun()


def render_net_worth_page(stores: UserStores):
    """Assets, liabilities, debts and investments."""
    st.title("📈 Net Worth")

    net_worth = stores.net_worth
    col1, col2, col3 = st.columns(3)
    col1.metric("Assets", format_inr(net_worth.total_assets))
    col2.metric("Liabilities", format_inr(net_worth.total_liabilities))
    col3.metric("Net Worth", format_inr(net_worth.net_worth))

    assets_tab, debts_tab, investments_tab = st.tabs(["🏠 Assets", "💳 Debts", "📊 Investments"])

    with assets_tab:
        with st.form("add_asset", clear_on_submit=True):
            asset_type = st.selectbox("Type", ["property", "vehicle", "gold", "cash", "other"])
            name = st.text_input("Name")
            purchase_value = st.number_input("Purchase value (₹)", min_value=0.0, step=1000.0)
            current_value = st.number_input("Current value (₹)", min_value=0.0, step=1000.0)
            if st.form_submit_button("Add Asset"):
                run_async(net_worth.assets.add(
                    asset_type=asset_type,
                    name=name,
                    purchase_value=purchase_value,
                    current_value=current_value,
                ))
        for asset in net_worth.assets.items:
            col1, col2 = st.columns([4, 1])
            col1.write(f"**{asset.name or asset.asset_type}**: {format_inr(asset.current_value)}")
            if col2.button("🗑️", key=f"del_asset_{asset.id}"):
                run_async(net_worth.assets.remove(asset.id))
                st.rerun()

    with debts_tab:
        debts = stores.debts
        st.caption(
            f"Outstanding {format_inr(debts.total_outstanding)} · "
            f"EMIs {format_inr(debts.total_emi)}/month"
        )
        with st.form("add_debt", clear_on_submit=True):
            liability_type = st.selectbox(
                "Type", ["home_loan", "car_loan", "personal_loan", "credit_card", "education_loan", "other"]
            )
            lender = st.text_input("Lender")
            principal = st.number_input("Principal (₹)", min_value=0.0, step=1000.0)
            outstanding = st.number_input("Outstanding (₹)", min_value=0.0, step=1000.0)
            rate = st.number_input("Interest rate (% p.a.)", min_value=0.0, step=0.1)
            emi = st.number_input("EMI (₹)", min_value=0.0, step=100.0)
            if st.form_submit_button("Add Debt"):
                run_async(debts.add(
                    liability_type=liability_type,
                    lender=lender,
                    principal_amount=principal,
                    outstanding_amount=outstanding,
                    interest_rate=rate,
                    emi_amount=emi or None,
                ))
                run_async(net_worth.fetch())
        for debt in debts.items:
            col1, col2 = st.columns([4, 1])
            col1.write(
                f"**{debt.lender or debt.liability_type}**: {format_inr(debt.outstanding_amount)} "
                f"@ {debt.interest_rate}%"
            )
            if col2.button("🗑️", key=f"del_debt_{debt.id}"):
                run_async(debts.remove(debt.id))
                run_async(net_worth.fetch())
                st.rerun()

    with investments_tab:
        investments = stores.investments
        st.caption(
            f"Invested {format_inr(investments.total_invested)} · "
            f"Value {format_inr(investments.total_value)}"
        )
        with st.form("add_investment", clear_on_submit=True):
            investment_type = st.selectbox(
                "Type", ["stocks", "mutual_fund", "fd", "ppf", "nps", "gold", "crypto", "other"]
            )
            name = st.text_input("Name *")
            purchase_price = st.number_input("Purchase price (₹)", min_value=0.0, step=10.0)
            quantity = st.number_input("Quantity", min_value=0.0, value=1.0, step=1.0)
            current_price = st.number_input("Current price (₹)", min_value=0.0, step=10.0)
            if st.form_submit_button("Add Investment") and name.strip():
                run_async(investments.add(
                    investment_type=investment_type,
                    name=name,
                    purchase_price=purchase_price,
                    quantity=quantity,
                    current_price=current_price or None,
                ))
        for investment in investments.items:
            col1, col2 = st.columns([4, 1])
            col1.write(
                f"**{investment.name}** ({investment.investment_type}): "
                f"{format_inr(investment.market_value)}"
            )
            if col2.button("🗑️", key=f"del_inv_{investment.id}"):
                run_async(investments.remove(investment.id))
                st.rerun()


def render_achievements_page(stores: UserStores):
    """Badges, points and level."""
    st.title("🏆 Achievements")

    stats = stores.stats.stats
    if stats is not None:
        # Picks up badges whose earlier write failed
        run_async(stores.achievements.check(stats))
        show_notifications(stores)
        stats = stores.stats.stats
    level = stores.stats.level
    col1, col2, col3 = st.columns(3)
    col1.metric("Points", stats.total_points if stats else 0)
    col2.metric("Level", f"{level.tier.level} · {level.tier.name}")
    col3.metric("Longest Streak", f"{stats.longest_streak if stats else 0} days")
    if level.next_tier:
        st.progress(level.progress_percent / 100)
        st.caption(f"{level.points_to_next} points to {level.next_tier.name}")

    earned = stores.achievements.earned_ids
    st.markdown("---")
    for definition in ACHIEVEMENTS:
        col1, col2 = st.columns([1, 5])
        col1.markdown(f"## {definition.icon if definition.id in earned else '🔒'}")
        with col2:
            st.markdown(f"**{definition.title}** (+{definition.points} points)")
            st.caption(definition.description)
            if definition.id not in earned and stats is not None:
                st.progress(progress_towards(definition, stats) / 100)


def render_advisors_page(components, user_id):
    """Run any AI advisor and show its structured answer."""
    st.title("🤖 AI Advisors")
    st.markdown("Each advisor looks at your latest numbers and gives personalised advice.")

    route = st.selectbox(
        "Choose an advisor",
        options=list(components.advisors),
        format_func=lambda r: ADVISOR_LABELS.get(r, r),
    )

    payload = None
    if route == "income-forecast":
        col1, col2, col3 = st.columns(3)
        timeframe = col1.selectbox("Months ahead", [1, 3, 6], index=1)
        extra = col2.number_input("What if: extra monthly income (₹)", min_value=0.0, step=1000.0)
        growth = col3.number_input("What if: monthly growth (%)", step=0.5)
        payload = {"timeframe": timeframe}
        if extra or growth:
            payload["whatIfScenario"] = {"additionalIncome": extra, "incomeGrowthPercent": growth}

    if not st.button("Get Advice", type="primary"):
        return

    advisor = components.advisor(route)
    with st.spinner("Analysing your finances..."):
        try:
            result = run_async(advisor.run(user_id, payload))
        except RateLimitedError as e:
            st.warning(str(e))
            return
        except PaymentRequiredError as e:
            st.error(str(e))
            return
        except (LLMServiceError, StorageError) as e:
            st.error(f"Could not get advice right now: {e}")
            return

    st.success("Analysis complete")
    summary = result.get("summary") or result.get("insights")
    if isinstance(summary, str):
        st.markdown(summary)
    st.json(result, expanded=False)


def render_chat_page(components, user_id):
    """Conversation with the FinBuddy assistant."""
    st.title("💬 Chat with FinBuddy")

    if "chat_history" not in st.session_state:
        st.session_state.chat_history = []

    read_aloud = st.toggle("🔊 Read replies aloud", value=False)

    for message in st.session_state.chat_history:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])

    prompt = st.chat_input("Ask about your spending, goals or taxes...")
    if not prompt:
        return

    st.session_state.chat_history.append({"role": "user", "content": prompt})
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        try:
            lines = run_async(components.assistant.stream(
                user_id, {"messages": st.session_state.chat_history}
            ))
            reply = st.write_stream(stream_text(lines))
        except RateLimitedError as e:
            st.warning(str(e))
            return
        except PaymentRequiredError as e:
            st.error(str(e))
            return
        except (LLMServiceError, StorageError) as e:
            st.error(f"FinBuddy is unavailable right now: {e}")
            return

    st.session_state.chat_history.append({"role": "assistant", "content": reply})

    if read_aloud and reply:
        try:
            audio = run_async(components.speech.synthesize(reply))
        except SpeechServiceError as e:
            st.caption(f"Could not read the reply aloud: {e}")
            return
        st.audio(base64.b64decode(audio), format="audio/mpeg", autoplay=True)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Session verification", "auth"),
        ("AI gateway", "llm"),
        ("Text-to-speech", "speech"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
