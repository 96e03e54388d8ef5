"""
app.py
Streamlit class cashier: dues, income/expense records and member status.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date

import pandas as pd
import streamlit as st

import auth
import db
import engine
import search
import splits
import store
import utils
from config import Config
from errors import IntegrityError, NotFoundError, ValidationError
from models import EXPENSE, INCOME, Settings, DUES_FREQUENCIES

logging.basicConfig(level=Config.LOG_LEVEL, format=Config.LOG_FORMAT)
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Class Cashier", layout="wide")


def init_once():
    # Initialize DB + default role passwords if needed
    db.init_db(auth.default_hashes())


def require_login():
    if "role" not in st.session_state:
        st.session_state.role = None


def logout():
    st.session_state.role = None
    st.success("Logged out.")


def run_action(action, success: str) -> bool:
    """Run a write, showing rejections as messages instead of crashing the page."""
    try:
        action()
    except ValidationError as exc:
        for reason in exc.reasons:
            st.error(reason)
        return False
    except (IntegrityError, NotFoundError) as exc:
        st.error(str(exc))
        return False
    except Exception:
        logger.exception("Unexpected error while saving")
        st.error("Something went wrong. Please try again.")
        return False
    st.success(success)
    return True


def login_screen():
    st.title("🔐 Class Cashier Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            role = auth.login(password)
            if role:
                st.session_state.role = role
                st.rerun()
            else:
                st.error("Wrong password.")

    with col2:
        st.info(
            "Treasurers log in with the admin password and can record transactions.\n\n"
            "Class members use the read-only password to check their dues."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default admin password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(new1, new2)
        if errors:
            for e in errors:
                st.error(e)
            return
        auth.change_password(auth.ADMIN, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Data access helpers ----------

def load_snapshot():
    return store.list_members(), store.list_transactions(), store.list_cashier_days(), store.get_settings()


def member_label(member) -> str:
    return f"{member.name} (ID {member.id})"


def download_buttons(df: pd.DataFrame, file_stem: str, sheet_name: str):
    c1, c2 = st.columns(2)
    with c1:
        st.download_button(
            f"Download {file_stem}.xlsx",
            data=utils.to_xlsx_bytes(df, sheet_name),
            file_name=f"{file_stem}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    with c2:
        st.download_button(
            f"Download {file_stem}.csv",
            data=utils.to_csv_bytes(df),
            file_name=f"{file_stem}.csv",
            mime="text/csv",
        )


# ---------- Pages ----------

def status_page():
    members, transactions, cashier_days, settings = load_snapshot()

    if settings.logo_url:
        st.image(settings.logo_url, width=100)
    st.title(settings.hero_title)
    st.caption(settings.hero_description)

    if not members:
        st.info("No members yet.")
        return

    query = st.text_input("Search your name")
    if query.strip():
        names = search.suggest_similar_names(query, [m.name for m in members])
        candidates = [m for m in members if m.name in names]
        if not candidates:
            st.caption("No matching names.")
            return
    else:
        candidates = members

    options = {member_label(m): m for m in candidates}
    chosen = st.selectbox("Member", list(options.keys()))
    personal_dashboard(options[chosen], members, transactions, cashier_days, settings)


def personal_dashboard(member, members, transactions, cashier_days, settings):
    summary = engine.compute_member_summary(member, transactions, cashier_days, settings, len(members))

    st.header(f"👤 {member.name}")
    c1, c2, c3, c4 = st.columns(4)
    if summary.arrears > 0:
        c1.metric("Arrears", utils.format_currency(summary.arrears))
    else:
        c1.metric("Withdrawable balance", utils.format_currency(summary.withdrawable_balance))
    c2.metric("Total paid", utils.format_currency(summary.total_paid))
    c3.metric("Dues", utils.format_currency(summary.total_dues), help=f"{len(cashier_days)} cashier days")
    c4.metric(
        "Expenses",
        utils.format_currency(summary.personal_expenses + summary.shared_expense_per_member),
        help=(
            f"Personal {utils.format_currency(summary.personal_expenses)} + "
            f"shared {utils.format_currency(summary.shared_expense_per_member)}"
        ),
    )
    st.progress(min(1.0, summary.progress_ratio), text=f"{summary.progress_ratio:.0%} paid")

    st.divider()

    left, right = st.columns(2)
    with left:
        st.subheader("Cashier days")
        if summary.day_statuses:
            st.dataframe(
                pd.DataFrame([
                    {
                        "Date": s.cashier_day.date,
                        "Description": s.cashier_day.description,
                        "Dues": utils.format_currency(s.dues_amount),
                        "Status": "✅ Paid" if s.paid else "⚠️ Unpaid",
                    }
                    for s in summary.day_statuses
                ]),
                use_container_width=True,
                hide_index=True,
            )
        else:
            st.caption("No cashier days scheduled yet.")

    with right:
        st.subheader("Outstanding items")
        if summary.arrears_items:
            st.dataframe(
                pd.DataFrame([
                    {
                        "Date": i.date,
                        "Item": ("Dues: " if i.kind == "dues" else "Expense: ") + i.description,
                        "Amount": utils.format_currency(i.amount),
                    }
                    for i in summary.arrears_items
                ]),
                use_container_width=True,
                hide_index=True,
            )
        else:
            st.caption("Nothing outstanding.")

        periods = engine.compute_period_arrears(member, transactions, settings)
        if periods.periods:
            with st.expander(f"Unpaid {settings.dues_frequency} dues: {utils.format_currency(periods.total)}"):
                for p in periods.periods:
                    st.write(f"- {p.label}: {utils.format_currency(p.amount)}")

    st.subheader("Personal transactions")
    if summary.personal_transactions:
        st.dataframe(
            pd.DataFrame([
                {
                    "Date": t.date,
                    "Description": t.description,
                    "Amount": ("+ " if t.is_income else "- ") + utils.format_currency(t.amount),
                }
                for t in summary.personal_transactions
            ]),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("No personal transactions.")


def dashboard_page():
    st.header("📊 Dashboard")

    members, transactions, _, _ = load_snapshot()
    stats = engine.compute_class_summary(transactions)
    pools = engine.compute_treasurer_balances(transactions)

    c1, c2, c3 = st.columns(3)
    c1.metric("Total income", utils.format_currency(stats.total_income))
    c2.metric("Total expenses", utils.format_currency(stats.total_expenses))
    c3.metric("Class balance", utils.format_currency(stats.final_balance))

    c4, c5, c6 = st.columns(3)
    c4.metric("Members", len(members))
    c5.metric("Treasurer 1 balance", utils.format_currency(pools.treasurer1_balance))
    c6.metric("Treasurer 2 balance", utils.format_currency(pools.treasurer2_balance))

    st.bar_chart(pd.DataFrame({"Income": [stats.total_income], "Expenses": [stats.total_expenses]},
                              index=["Class finances"]))

    st.divider()

    st.subheader("All transactions")
    df = utils.transactions_frame(transactions, members)
    st.dataframe(df, use_container_width=True, hide_index=True)


def members_page():
    st.header("👥 Members")

    members, transactions, cashier_days, settings = load_snapshot()
    summaries = engine.compute_member_summaries(members, transactions, cashier_days, settings)
    report = utils.member_report_frame(summaries)

    st.dataframe(report, use_container_width=True, hide_index=True)
    if members:
        download_buttons(report, "class_member_report", "Members")

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("➕ Add member")
        name = st.text_input("Name")
        if st.button("Add", type="primary"):
            if run_action(lambda: store.create_member(name), "Member added."):
                st.rerun()

    with colB:
        if not members:
            return
        st.subheader("Member actions")
        options = {member_label(m): m for m in members}
        selected = options[st.selectbox("Member", list(options.keys()))]

        new_name = st.text_input("New name", value=selected.name, key=f"rename_{selected.id}")
        if st.button("Rename"):
            if run_action(lambda: store.rename_member(selected.id, new_name), "Member renamed."):
                st.rerun()

        if store.member_has_transactions(selected.id):
            st.caption("Members with transaction history cannot be deleted.")
        else:
            delete_confirm = st.checkbox("Confirm delete", value=False, key="del_member_confirm")
            if st.button("Delete", type="secondary", disabled=not delete_confirm):
                if run_action(lambda: store.delete_member(selected.id), "Member deleted."):
                    st.rerun()


def split_form_state() -> splits.SplitFormState:
    if "split_form" not in st.session_state:
        st.session_state.split_form = splits.SplitFormState()
    return st.session_state.split_form


def dispatch_split(action: str, value):
    st.session_state.split_form = splits.reduce_split_form(split_form_state(), action, value)


def income_form(members, cashier_days):
    st.subheader("➕ Record income")
    if not members:
        st.info("No members yet. Add a member first.")
        return

    everyone = st.toggle("Apply to all members", value=False)
    c1, c2, c3 = st.columns(3)
    with c1:
        options = {member_label(m): m.id for m in members}
        member_key = st.selectbox("Member", list(options.keys()), disabled=everyone, key="income_member")
        amount = st.text_input("Amount", value=str(store.get_settings().dues_amount), key="income_amount")
    with c2:
        pay_date = st.date_input("Date", value=date.today(), key="income_date").isoformat()
        description = st.text_input("Description", value="Dues payment", key="income_desc")
    with c3:
        treasurer = st.selectbox("Received by", list(splits.POOL_CHOICES), key="income_treasurer")
        day_options = {"(not linked)": None}
        day_options.update({f"{d.date} - {d.description}": d.id for d in cashier_days})
        day_key = st.selectbox("Settles cashier day", list(day_options.keys()))

    if st.button("Record income", type="primary"):
        try:
            amt = utils.parse_amount(amount)
        except ValueError:
            st.error("Amount must be a whole number.")
            return
        pool = splits.pool_from_choice(treasurer)
        if everyone:
            action = lambda: store.record_contribution_for_all(
                amt, pay_date, description, treasurer=pool, cashier_day_id=day_options[day_key])
        else:
            action = lambda: store.create_transaction(
                INCOME, amt, pay_date, description, member_id=options[member_key],
                treasurer=pool, cashier_day_id=day_options[day_key])
        if run_action(action, "Income recorded."):
            st.rerun()


def expense_form(members, transactions):
    st.subheader("➖ Record expense")
    pools = engine.compute_treasurer_balances(transactions)
    state = split_form_state()

    c1, c2, c3 = st.columns(3)
    with c1:
        total_text = st.text_input("Total amount", value=str(state.total_amount), key="expense_total")
        try:
            total = utils.parse_amount(total_text)
        except ValueError:
            st.error("Amount must be a whole number.")
            return
        if total != state.total_amount:
            dispatch_split("set_total", total)
        exp_date = st.date_input("Date", value=date.today(), key="expense_date").isoformat()
    with c2:
        description = st.text_input("Description", key="expense_desc")
        options = {"(shared by the class)": None}
        options.update({member_label(m): m.id for m in members})
        owner = st.selectbox("Charged to", list(options.keys()),
                             help="Leave unselected to split the expense across all members.")
    with c3:
        mode = st.radio("Paid from", splits.SPLIT_MODES, horizontal=True,
                        format_func=lambda m: "One treasurer" if m == "single" else "Both treasurers",
                        index=splits.SPLIT_MODES.index(state.split_mode))
        if mode != state.split_mode:
            dispatch_split("set_mode", mode)

        state = split_form_state()
        if state.split_mode == "single":
            choice = st.selectbox("Treasurer", list(splits.POOL_CHOICES),
                                  index=splits.POOL_CHOICES.index(state.treasurer or splits.NO_POOL))
            pool = splits.pool_from_choice(choice)
            if pool != state.treasurer:
                dispatch_split("set_treasurer", pool)
            if pool is None:
                st.caption("Recorded outside both treasurer pools.")
            else:
                st.caption(f"Available: {utils.format_currency(pools.for_pool(pool))}")
        else:
            part1 = st.number_input("Treasurer 1 share", min_value=0, step=1000, value=state.part1)
            if part1 != state.part1:
                dispatch_split("set_part1", int(part1))
            state = split_form_state()
            st.caption(
                f"Treasurer 2 share: {utils.format_currency(splits.derive_part2(state))} · "
                f"Available: {utils.format_currency(pools.treasurer1_balance)} / "
                f"{utils.format_currency(pools.treasurer2_balance)}"
            )

    if st.button("Record expense", type="primary"):
        state = split_form_state()
        ok = run_action(
            lambda: store.record_expense_split(
                state.total_amount, splits.split_parts(state), date_iso=exp_date,
                description=description, member_id=options[owner]),
            "Expense recorded.",
        )
        if ok:
            st.session_state.split_form = splits.SplitFormState()
            st.rerun()


def edit_transaction_form(existing, members):
    st.subheader(f"✏️ Edit transaction (ID: {existing.id})")
    c1, c2, c3 = st.columns(3)
    with c1:
        kind = st.selectbox("Type", [INCOME, EXPENSE], index=[INCOME, EXPENSE].index(existing.kind))
        amount = st.text_input("Amount", value=str(existing.amount), key="edit_amount")
    with c2:
        tx_date = st.date_input("Date", value=utils.parse_iso(existing.date), key="edit_date").isoformat()
        description = st.text_input("Description", value=existing.description, key="edit_desc")
    with c3:
        options = {"(none)": None}
        options.update({member_label(m): m.id for m in members})
        current = next((k for k, v in options.items() if v == existing.member_id), "(none)")
        member_key = st.selectbox("Member", list(options.keys()), index=list(options.keys()).index(current),
                                  key="edit_member")
        pools = list(splits.POOL_CHOICES)
        treasurer = st.selectbox("Treasurer", pools, index=pools.index(existing.treasurer or splits.NO_POOL),
                                 key="edit_treasurer")

    if st.button("Save changes", type="primary"):
        try:
            amt = utils.parse_amount(amount)
        except ValueError:
            st.error("Amount must be a whole number.")
            return
        ok = run_action(
            lambda: store.update_transaction(
                existing.id, kind, amt, tx_date, description, member_id=options[member_key],
                treasurer=splits.pool_from_choice(treasurer),
                cashier_day_id=existing.cashier_day_id if kind == INCOME else None),
            "Transaction updated.",
        )
        if ok:
            st.session_state.edit_transaction_id = None
            st.rerun()
    if st.button("Cancel edit"):
        st.session_state.edit_transaction_id = None
        st.rerun()


def transactions_page():
    st.header("💳 Transactions")

    members, transactions, cashier_days, _ = load_snapshot()

    tab_in, tab_out = st.tabs(["Income", "Expense"])
    with tab_in:
        income_form(members, cashier_days)
    with tab_out:
        expense_form(members, transactions)

    st.divider()

    st.subheader("History")
    df = utils.transactions_frame(transactions, members)
    st.dataframe(df, use_container_width=True, hide_index=True)
    if transactions:
        download_buttons(df, "class_transactions", "Transactions")

    if not transactions:
        return

    st.subheader("Transaction actions")
    by_id = {t.id: t for t in transactions}
    selected_id = st.selectbox("Transaction ID", options=["(none)"] + [str(t.id) for t in transactions])
    if selected_id != "(none)":
        selected = by_id[int(selected_id)]
        if selected.batch_id:
            batch_size = sum(1 for t in transactions if t.batch_id == selected.batch_id)
            st.caption(f"Part of a batch of {batch_size} transactions; it can only be deleted as a whole.")
            confirm = st.checkbox("Confirm delete batch", value=False, key="del_batch_confirm")
            if st.button("Delete batch", disabled=not confirm):
                if run_action(lambda: store.delete_batch(selected.batch_id), "Batch deleted."):
                    st.rerun()
        else:
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_transaction_id = selected.id
                    st.rerun()
            with c2:
                confirm = st.checkbox("Confirm delete", value=False, key="del_tx_confirm")
                if st.button("Delete", disabled=not confirm):
                    if run_action(lambda: store.delete_transaction(selected.id), "Transaction deleted."):
                        st.rerun()

    edit_id = st.session_state.get("edit_transaction_id")
    if edit_id and edit_id in by_id:
        st.divider()
        edit_transaction_form(by_id[edit_id], members)


def cashier_days_page():
    st.header("📅 Cashier Days")

    cashier_days = store.list_cashier_days()
    settings = store.get_settings()
    df = utils.cashier_days_frame(cashier_days, settings)
    st.dataframe(df, use_container_width=True, hide_index=True)
    if cashier_days:
        download_buttons(df, "cashier_days", "Cashier Days")

    st.divider()

    colA, colB = st.columns(2)
    with colA:
        st.subheader("➕ Add cashier day")
        day = st.date_input("Date", value=date.today()).isoformat()
        description = st.text_input("Description")
        custom = st.checkbox("Custom dues amount", value=False)
        dues = st.number_input("Dues amount", min_value=0, step=500, value=settings.dues_amount, disabled=not custom)
        if st.button("Add", type="primary"):
            amount = int(dues) if custom else None
            if run_action(lambda: store.create_cashier_day(day, description, amount), "Cashier day added."):
                st.rerun()

    with colB:
        if not cashier_days:
            return
        st.subheader("Delete cashier day")
        options = {f"{d.date} - {d.description}": d.id for d in cashier_days}
        chosen = st.selectbox("Cashier day", list(options.keys()))
        confirm = st.checkbox("Confirm delete", value=False, key="del_day_confirm")
        if st.button("Delete", disabled=not confirm):
            if run_action(lambda: store.delete_cashier_day(options[chosen]), "Cashier day deleted."):
                st.rerun()


def settings_page():
    st.header("⚙️ Settings")

    current = store.get_settings()
    st.subheader("Application")
    col1, col2 = st.columns(2)
    with col1:
        app_name = st.text_input("App name", value=current.app_name)
        logo_url = st.text_input("Logo URL", value=current.logo_url)
        hero_title = st.text_input("Home title", value=current.hero_title)
        hero_description = st.text_area("Home description", value=current.hero_description)
    with col2:
        dues_amount = st.number_input("Dues amount", min_value=0, step=500, value=current.dues_amount)
        frequency = st.selectbox("Dues frequency", DUES_FREQUENCIES,
                                 index=DUES_FREQUENCIES.index(current.dues_frequency))
        has_start = st.checkbox("Dues start date", value=bool(current.start_date))
        start = st.date_input(
            "Start date",
            value=utils.parse_iso(utils.day_key(current.start_date)) if current.start_date else date.today(),
            max_value=date.today(),
            disabled=not has_start,
        )

    if st.button("Save settings", type="primary"):
        updated = Settings(
            app_name=app_name,
            logo_url=logo_url.strip(),
            hero_title=hero_title,
            hero_description=hero_description,
            dues_amount=int(dues_amount),
            dues_frequency=frequency,
            start_date=start.isoformat() if has_start else None,
        )
        if run_action(lambda: store.update_settings(updated), "Settings saved."):
            st.rerun()

    st.divider()

    st.subheader("Change password")
    role = st.selectbox("Access", auth.ROLES, format_func=lambda r: "Admin" if r == auth.ADMIN else "Read-only")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password"):
        errors = auth.validate_new_password(p1, p2)
        if errors:
            for e in errors:
                st.error(e)
        else:
            auth.change_password(role, p1)
            st.success("Password updated.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 3 sample members, cashier days and a few transactions for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        if run_action(store.insert_sample_data, "Sample data inserted."):
            st.rerun()


def main_app():
    settings = store.get_settings()
    role = st.session_state.role
    st.sidebar.title(f"💰 {settings.app_name}")
    st.sidebar.caption("Logged in as: " + ("Treasurer (admin)" if auth.can_write(role) else "Member (read-only)"))

    pages = ["My Status", "Dashboard"]
    if auth.can_write(role):
        pages += ["Members", "Transactions", "Cashier Days", "Settings"]
    if st.session_state.get("page") not in pages:
        st.session_state.page = "My Status"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if st.session_state.page == "My Status":
        status_page()
    elif st.session_state.page == "Dashboard":
        dashboard_page()
    elif st.session_state.page == "Members":
        members_page()
    elif st.session_state.page == "Transactions":
        transactions_page()
    elif st.session_state.page == "Cashier Days":
        cashier_days_page()
    elif st.session_state.page == "Settings":
        settings_page()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.role:
        login_screen()
        return

    # Force password change on first admin login after DB creation
    if auth.can_write(st.session_state.role) and db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
