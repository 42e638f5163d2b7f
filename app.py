"""
app.py
Streamlit dues tracker ("Çay Şeker Parası"): payments, expenses, yearly summary.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import nullcontext
from datetime import date

import pandas as pd
import streamlit as st

import auth
import config
import db
import ledger
import state
import storage
import utils
from models import MONTH_NAMES, Expense, Payment, Profile

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Çay Şeker Parası", layout="wide")


def init_once():
    config.setup_logging()
    # Initialize DB + default admin if needed
    db.init_db(auth.hash_password(config.DEFAULT_ADMIN_PASSWORD))


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "profile_id" not in st.session_state:
        st.session_state.profile_id = None


def logout():
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    st.session_state.logged_in = False
    st.session_state.profile_id = None


def store_error(message: str):
    logger.exception(message)
    st.error(message)


def login_screen():
    st.title("🔐 Çay Şeker Parası - Giriş")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Kullanıcı adı")
        password = st.text_input("Şifre", type="password")
        if st.button("Giriş Yap", type="primary"):
            try:
                profile = auth.login(username.strip(), password)
            except sqlite3.Error:
                store_error("Giriş yapılamadı")
                return
            if profile:
                st.session_state.logged_in = True
                st.session_state.profile_id = profile.id
                st.rerun()
            else:
                st.error("Kullanıcı adı veya şifre hatalı.")

    with col2:
        st.info(
            "İlk çalıştırmada varsayılan yönetici oluşturulur:\n\n"
            "- kullanıcı adı: **admin**\n\n"
            "İlk girişte şifrenizi değiştirmeniz istenir."
        )


def force_change_password_screen(profile: Profile):
    st.title("⚠️ Şifre Değiştirme (Zorunlu)")

    st.warning("Uygulamayı kullanmadan önce varsayılan şifreyi değiştirmelisiniz.")
    if change_password_form(profile, key="forced"):
        db.clear_force_password_change()
        st.rerun()


def change_password_form(profile: Profile, key: str) -> bool:
    new1 = st.text_input("Yeni şifre", type="password", key=f"{key}_p1")
    new2 = st.text_input("Yeni şifre (tekrar)", type="password", key=f"{key}_p2")

    if not st.button("Şifreyi Güncelle", type="primary", key=f"{key}_submit"):
        return False
    errors = utils.validate_password(new1, new2)
    if errors:
        for e in errors:
            st.error(e)
        return False
    try:
        auth.update_user(profile.id, new1)
    except (sqlite3.Error, LookupError):
        store_error("Şifre değiştirme başarısız")
        return False
    st.success("Şifre başarıyla değiştirildi!")
    return True


# ---------- Data access helpers ----------

def load_members() -> list[Profile]:
    rows = db.select("profiles", ["id", "full_name", "is_admin", "created_at", "username"], order=("full_name", "asc"))
    return ledger.parse_rows(Profile, rows)


def load_payments(filters=(), order=("payment_date", "desc")) -> list[Payment]:
    return ledger.parse_rows(Payment, db.select("payments", filters=filters, order=order))


def load_expenses(filters=(), order=("created_at", "desc")) -> list[Expense]:
    return ledger.parse_rows(Expense, db.select("expenses", filters=filters, order=order))


def get_view(name: str) -> state.ViewState:
    key = f"view_{name}"
    if key not in st.session_state:
        st.session_state[key] = state.ViewState()
    return st.session_state[key]


def put_view(name: str, view: state.ViewState):
    st.session_state[f"view_{name}"] = view


def fetch_into_view(name: str, loader, error_message: str) -> state.ViewState:
    # Each script run fetches synchronously, so the rerun itself orders fetches within
    # a session. The token only drops a result whose run was overtaken by a newer one
    # (the filter changed mid-load and Streamlit started another run).
    view, token = state.begin_fetch(get_view(name))
    put_view(name, view)
    try:
        rows = loader()
    except sqlite3.Error:
        store_error(error_message)
        return get_view(name)
    view = state.apply_fetch(get_view(name), token, rows)
    put_view(name, view)
    return view


def month_picker(label: str, key: str, default: str | None = None) -> str:
    """Year + month selects; returns the period key (YYYY-MM-01)."""
    year, month = ledger.parse_period(default) if default else (date.today().year, date.today().month)
    years = utils.year_options(10)
    if year not in years:
        years.append(year)
    c1, c2 = st.columns(2)
    with c1:
        chosen_year = st.selectbox(f"{label} - yıl", years, index=years.index(year), key=f"{key}_year")
    with c2:
        chosen_month = st.selectbox(
            f"{label} - ay",
            list(range(1, 13)),
            index=month - 1,
            format_func=lambda m: MONTH_NAMES[m - 1],
            key=f"{key}_month",
        )
    return ledger.month_key(chosen_year, chosen_month)


def render_matrix(payments: list[Payment]):
    st.success(f"Toplam Ödenmiş Aidat: {utils.fmt_money(ledger.total_paid(payments))}")
    for year_row in ledger.payment_matrix(payments):
        st.subheader(f"{year_row.year} Yılı Ödemeleri")
        for start in (0, 6):
            cols = st.columns(6)
            for col, cell in zip(cols, year_row.cells[start:start + 6]):
                with col:
                    if cell.is_paid:
                        text = f"✅ **{cell.name}**\n\n{utils.fmt_money(cell.amount)}"
                        if cell.installments > 1:
                            text += f" ({cell.installments} taksit)"
                        st.markdown(text)
                    else:
                        st.markdown(f"⬜ {cell.name}")


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Yıllık Genel Bakış")

    year = st.selectbox("Yıl", utils.year_options(5))
    year_end = f"{year}-12-31"
    try:
        # Everything up to year end: the selected year plus all prior years for the carry-over
        payments = load_payments([("lte", "payment_month", year_end)], order=None)
        expenses = load_expenses([("lte", "expense_date", year_end)], order=None)
    except sqlite3.Error:
        store_error("Yıllık özet alınırken hata oluştu")
        return

    summary = ledger.year_summary(payments, expenses, year)

    c1, c2, c3 = st.columns(3)
    c1.metric("Önceki yıllardan devreden", utils.fmt_money(summary.previous_balance))
    c2.metric(f"{year} bakiyesi", utils.fmt_money(summary.balance))
    c3.metric("Genel bakiye", utils.fmt_money(summary.final_balance))

    st.divider()

    rows = [
        {
            "Ay": f"{r.month}. {r.name}",
            "Toplam Gelir": r.total_payments,
            "Toplam Gider": r.total_expenses,
            "Toplam Bakiye": r.balance,
        }
        for r in summary.rows
    ]
    rows.append(
        {
            "Ay": "Yıl Toplamı",
            "Toplam Gelir": summary.total_payments,
            "Toplam Gider": summary.total_expenses,
            "Toplam Bakiye": summary.balance,
        }
    )
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def payment_form(profile: Profile, members: list[Profile], existing: Payment | None = None):
    key = f"edit_{existing.id}" if existing else "new"
    if existing:
        st.subheader(f"✏️ Ödeme Düzenle (ID: {existing.id})")
    else:
        st.subheader("➕ Ödeme Ekle")

    member_ids = [m.id for m in members]
    names = {m.id: m.full_name for m in members}
    col1, col2 = st.columns(2)
    with col1:
        index = member_ids.index(existing.user_id) if existing and existing.user_id in member_ids else None
        user_id = st.selectbox(
            "Üye",
            member_ids,
            index=index,
            format_func=lambda i: names.get(i, str(i)),
            placeholder="Bir üye seçin",
            key=f"{key}_user",
        )
        amount = st.text_input("Tutar", value=(f"{existing.amount:.2f}" if existing else ""), key=f"{key}_amount")
        chosen_date = None
        if config.PAYMENT_DATE_POLICY == "manual":
            chosen_date = st.date_input(
                "Ödeme tarihi",
                value=(utils.parse_iso(existing.payment_date) if existing else date.today()),
                key=f"{key}_date",
            )
    with col2:
        payment_month = month_picker("Ödeme ayı", key=f"{key}_period", default=(existing.payment_month if existing else None))

    errors = utils.validate_payment_inputs(user_id, amount, payment_month)
    label = "Güncelle" if existing else "Kaydet"
    if not st.button(label, type="primary", key=f"{key}_submit"):
        return
    if errors:
        for e in errors:
            st.error(e)
        return

    fields = {
        "user_id": user_id,
        "amount": utils.parse_amount(amount),
        "payment_date": utils.resolve_payment_date(config.PAYMENT_DATE_POLICY, chosen_date),
        "payment_month": payment_month,
    }
    try:
        if existing:
            db.update("payments", existing.id, fields)
            st.session_state.edit_payment_id = None
            st.success("Ödeme başarıyla güncellendi")
        else:
            db.insert("payments", {**fields, "created_by": profile.id})
            st.success("Ödeme başarıyla eklendi")
    except sqlite3.Error:
        store_error("Ödeme güncellenemedi" if existing else "Ödeme eklenemedi")
        return
    st.rerun()


def payments_page(profile: Profile):
    st.header("💳 Ödemeler")

    try:
        members = load_members() if profile.is_admin else [profile]
    except sqlite3.Error:
        store_error("Üyeler yüklenemedi")
        members = [profile]
    names = {m.id: m.full_name for m in members}

    view = get_view("payments")

    with st.sidebar:
        st.subheader("Filtreler")
        filter_user = None
        if profile.is_admin:
            filter_user = st.selectbox(
                "Üye",
                [None] + [m.id for m in members],
                format_func=lambda i: "Tüm Üyeler" if i is None else names.get(i, str(i)),
            )
        filter_date = st.date_input("Tarih", value=None)
        use_month = st.checkbox("Aya göre filtrele")
        filter_month = month_picker("Ay", key="filter_period") if use_month else None

    view = state.set_filters(
        view,
        user_id=filter_user,
        payment_date=filter_date.isoformat() if filter_date else None,
        payment_month=filter_month,
    )
    put_view("payments", view)

    # Members only ever see their own payments
    scope = [] if profile.is_admin else [("eq", "user_id", profile.id)]
    view = fetch_into_view("payments", lambda: load_payments(scope), "Ödemeler yüklenemedi")

    filtered = ledger.filter_payments(view.rows, **view.filters)
    page = ledger.paginate(filtered, view.page)

    table = utils.payments_frame(page.rows, names)
    table = table.rename(
        columns={"full_name": "Üye", "amount": "Tutar", "payment_date": "Ödeme Tarihi", "payment_month": "Ödeme Ayı"}
    )
    st.dataframe(table[["id", "Üye", "Tutar", "Ödeme Tarihi", "Ödeme Ayı"]], use_container_width=True, hide_index=True)

    if page.total_pages > 1:
        c1, c2, c3 = st.columns([1, 1, 1])
        with c1:
            if st.button("Önceki", disabled=page.page == 1):
                put_view("payments", state.set_page(view, page.page - 1))
                st.rerun()
        with c2:
            st.write(f"{page.page} / {page.total_pages}")
        with c3:
            if st.button("Sonraki", disabled=page.page == page.total_pages):
                put_view("payments", state.set_page(view, page.page + 1))
                st.rerun()

    if not profile.is_admin:
        return

    st.divider()

    by_id = {p.id: p for p in page.rows}
    colA, colB = st.columns([1, 2])
    with colA:
        selected_id = st.selectbox("Ödeme ID", options=["(yok)"] + [str(i) for i in by_id])
    with colB:
        if selected_id != "(yok)":
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Düzenle"):
                    st.session_state.edit_payment_id = int(selected_id)
                    st.rerun()
            with c2:
                confirm = st.checkbox("Silmeyi onayla", value=False, key="pay_del_confirm")
                if st.button("Sil", disabled=not confirm):
                    try:
                        db.delete("payments", int(selected_id))
                    except sqlite3.Error:
                        store_error("Ödeme silinemedi")
                    else:
                        st.success("Ödeme başarıyla silindi")
                        st.rerun()

    st.divider()

    edit_id = st.session_state.get("edit_payment_id")
    existing = next((p for p in view.rows if p.id == edit_id), None) if edit_id else None
    if existing:
        payment_form(profile, members, existing=existing)
        if st.button("Düzenlemeyi iptal et"):
            st.session_state.edit_payment_id = None
            st.rerun()
    else:
        payment_form(profile, members)


def non_payers_page():
    st.header("⏰ Ödemeyenler")

    year = st.selectbox("Yıl", utils.year_options(5))
    try:
        members = load_members()
        payments = load_payments(
            [("gte", "payment_month", f"{year}-01-01"), ("lte", "payment_month", f"{year}-12-31")],
            order=None,
        )
    except sqlite3.Error:
        store_error("Ödeme bilgileri alınamadı")
        return

    months = ledger.outstanding_months(ledger.unpaid_by_month(members, payments, year))
    if not months:
        st.caption("Bu yıl için ödenmemiş aidat yok.")
        return

    for month in months:
        with st.expander(f"{month.name} {year} ({len(month.members)} üye)"):
            for member in month.members:
                st.write(f"- {member.full_name}")


def expense_form(profile: Profile, existing: Expense | None = None):
    key = f"exp_edit_{existing.id}" if existing else "exp_new"
    st.subheader(f"✏️ Harcama Düzenle (ID: {existing.id})" if existing else "➕ Harcama Ekle")

    col1, col2 = st.columns(2)
    with col1:
        description = st.text_input("Açıklama", value=(existing.description if existing else ""), key=f"{key}_desc")
        amount = st.text_input("Tutar", value=(f"{existing.amount:.2f}" if existing else ""), key=f"{key}_amount")
        expense_date = st.date_input(
            "Tarih",
            value=(utils.parse_iso(existing.expense_date) if existing else date.today()),
            key=f"{key}_date",
        ).isoformat()
    with col2:
        image = st.file_uploader("Resim Yükle", type=["png", "jpg", "jpeg", "gif", "webp"], key=f"{key}_image")

    errors = utils.validate_expense_inputs(description, amount, expense_date)
    if not st.button("Güncelle" if existing else "Harcama Ekle", type="primary", key=f"{key}_submit"):
        return
    if errors:
        for e in errors:
            st.error(e)
        return

    old_url = existing.image_url if existing else None
    image_url = old_url
    staged = (
        storage.staged_upload(storage.expense_image_path(image.name), image.getvalue())
        if image is not None
        else nullcontext()
    )
    try:
        with staged as path:
            if path:
                image_url = storage.get_public_url(path)
            fields = {
                "description": description.strip(),
                "amount": utils.parse_amount(amount),
                "expense_date": expense_date,
                "image_url": image_url,
            }
            if existing:
                db.update("expenses", existing.id, fields)
            else:
                db.insert("expenses", {**fields, "created_by": profile.id})
    except (sqlite3.Error, OSError, ValueError):
        store_error("Harcama kaydedilirken hata oluştu")
        return
    if existing:
        st.session_state.edit_expense_id = None
    if old_url and image_url != old_url:
        storage.discard_url(old_url)
    st.success("Harcama kaydedildi")
    st.rerun()


def expenses_page(profile: Profile):
    st.header("🧾 Harcama Listesi")

    c1, c2 = st.columns(2)
    with c1:
        month = st.selectbox(
            "Ay", list(range(1, 13)), index=date.today().month - 1, format_func=lambda m: MONTH_NAMES[m - 1]
        )
    with c2:
        year = st.selectbox("Yıl", utils.year_options(10))

    view = fetch_into_view("expenses", load_expenses, "Harcama verileri alınırken hata oluştu")
    shown = ledger.expenses_in_month(view.rows, year, month)

    table = utils.expenses_frame(shown).rename(
        columns={"description": "Açıklama", "amount": "Tutar", "expense_date": "Tarih"}
    )
    st.dataframe(table[["id", "Açıklama", "Tutar", "Tarih"]], use_container_width=True, hide_index=True)
    st.caption(f"Bu ayın toplamı: {utils.fmt_money(sum(e.amount for e in shown))}")

    by_id = {e.id: e for e in shown}
    selected_id = st.selectbox("Harcama ID", options=["(yok)"] + [str(i) for i in by_id])
    if selected_id != "(yok)":
        expense = by_id[int(selected_id)]
        if expense.image_url:
            if st.button("Resmi Göster"):
                st.image(storage.resolve(expense.image_url), use_container_width=True)
        if profile.is_admin:
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Düzenle", key="exp_edit"):
                    st.session_state.edit_expense_id = expense.id
                    st.rerun()
            with c2:
                confirm = st.checkbox("Silmeyi onayla", value=False, key="exp_del_confirm")
                if st.button("Sil", disabled=not confirm, key="exp_delete"):
                    try:
                        db.delete("expenses", expense.id)
                    except sqlite3.Error:
                        store_error("Silme işlemi başarısız!")
                    else:
                        storage.discard_url(expense.image_url)
                        st.rerun()

    if not profile.is_admin:
        return

    st.divider()

    edit_id = st.session_state.get("edit_expense_id")
    existing = next((e for e in view.rows if e.id == edit_id), None) if edit_id else None
    if existing:
        expense_form(profile, existing=existing)
        if st.button("Düzenlemeyi iptal et", key="exp_cancel"):
            st.session_state.edit_expense_id = None
            st.rerun()
    else:
        expense_form(profile)


def member_form(existing: Profile | None = None):
    key = f"mem_edit_{existing.id}" if existing else "mem_new"
    st.subheader(f"✏️ Üye Düzenle (ID: {existing.id})" if existing else "➕ Üye Ekle")

    col1, col2 = st.columns(2)
    with col1:
        username = st.text_input("Kullanıcı adı", value=((existing.username or "") if existing else ""), key=f"{key}_user")
        full_name = st.text_input("Ad soyad", value=(existing.full_name if existing else ""), key=f"{key}_name")
    with col2:
        is_admin = st.checkbox("Yönetici", value=(existing.is_admin if existing else False), key=f"{key}_admin")
        password = st.text_input(
            "Şifre" + (" (boş bırakılırsa değişmez)" if existing else ""), type="password", key=f"{key}_pw"
        )

    new_password = password if (password or not existing) else None
    errors = utils.validate_member_inputs(username, full_name, new_password)
    if not st.button("Kaydet", type="primary", key=f"{key}_submit"):
        return
    if errors:
        for e in errors:
            st.error(e)
        return

    try:
        if existing:
            db.update(
                "profiles",
                existing.id,
                {"username": username.strip(), "full_name": full_name.strip(), "is_admin": int(is_admin)},
            )
            if new_password:
                auth.update_user(existing.id, new_password)
            st.session_state.edit_member_id = None
        else:
            auth.create_profile(username.strip(), password, full_name.strip(), is_admin)
    except sqlite3.IntegrityError:
        st.error("Bu kullanıcı adı zaten kullanılıyor.")
        return
    except (sqlite3.Error, LookupError):
        store_error("Üye kaydedilemedi")
        return
    st.success("Üye kaydedildi.")
    st.rerun()


def members_page(profile: Profile):
    st.header("👥 Üyeler")

    if not profile.is_admin:
        st.error("Bu sayfaya erişim yetkiniz yok.")
        return

    try:
        members = load_members()
    except sqlite3.Error:
        store_error("Üyeleri yüklerken bir hata oluştu")
        return

    df = pd.DataFrame(
        [{"id": m.id, "Ad Soyad": m.full_name, "Rol": "Yönetici" if m.is_admin else "Üye"} for m in members]
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    by_id = {m.id: m for m in members}
    selected_id = st.selectbox(
        "Üye seçin",
        options=[None] + list(by_id),
        format_func=lambda i: "(yok)" if i is None else by_id[i].full_name,
    )
    if selected_id is not None:
        member = by_id[selected_id]
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Düzenle", key="mem_edit"):
                st.session_state.edit_member_id = member.id
                st.rerun()
        with c2:
            confirm = st.checkbox("Silmeyi onayla (ödemeleri de silinir)", value=False, key="mem_del_confirm")
            if st.button("Sil", disabled=not confirm or member.id == profile.id, key="mem_delete"):
                try:
                    db.delete("profiles", member.id)
                except sqlite3.Error:
                    store_error("Üye silinemedi")
                else:
                    st.success("Üye silindi.")
                    st.rerun()

        st.subheader(f"{member.full_name} - Aidat Geçmişi")
        try:
            payments = load_payments([("eq", "user_id", member.id)])
        except sqlite3.Error:
            store_error("Ödemeleri yüklerken bir hata oluştu")
        else:
            render_matrix(payments)

    st.divider()

    existing = by_id.get(st.session_state.get("edit_member_id"))
    if existing:
        member_form(existing=existing)
        if st.button("Düzenlemeyi iptal et", key="mem_cancel"):
            st.session_state.edit_member_id = None
            st.rerun()
    else:
        member_form()


def my_dues_page(profile: Profile):
    st.header(f"📅 {profile.full_name} - Aidat Geçmişi")
    try:
        payments = load_payments([("eq", "user_id", profile.id)], order=("payment_month", "desc"))
    except sqlite3.Error:
        store_error("Aidat bilgileri alınırken hata oluştu")
        return
    render_matrix(payments)


def reports_page(profile: Profile):
    st.header("📁 Raporlar")

    if not profile.is_admin:
        st.error("Bu sayfaya erişim yetkiniz yok.")
        return

    try:
        members = load_members()
        payments = load_payments()
        expenses = load_expenses(order=("expense_date", "desc"))
    except sqlite3.Error:
        store_error("Rapor verileri alınamadı")
        return

    st.subheader("Ödemeleri CSV olarak indir")
    if payments:
        st.download_button(
            "payments.csv indir",
            data=utils.payments_to_csv_bytes(payments, {m.id: m.full_name for m in members}),
            file_name="payments.csv",
            mime="text/csv",
        )
    else:
        st.caption("Dışa aktarılacak ödeme yok.")

    st.divider()

    st.subheader("Harcamaları CSV olarak indir")
    if expenses:
        st.download_button(
            "expenses.csv indir",
            data=utils.expenses_to_csv_bytes(expenses),
            file_name="expenses.csv",
            mime="text/csv",
        )
    else:
        st.caption("Dışa aktarılacak harcama yok.")


def settings_page(profile: Profile):
    st.header("🔑 Şifre Yenile")
    change_password_form(profile, key="settings")


def main_app(profile: Profile):
    st.sidebar.title("☕ Çay Şeker Parası")
    st.sidebar.caption(f"Giriş yapan: {profile.full_name}")

    pages = ["Gösterge Paneli", "Ödemeler", "Harcamalar", "Aidat Geçmişim", "Ödemeyenler", "Şifre Yenile"]
    if profile.is_admin:
        pages[4:4] = ["Üyeler", "Raporlar"]
    if st.session_state.get("page") not in pages:
        st.session_state.page = pages[0]
    st.session_state.page = st.sidebar.radio("Menü", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Çıkış Yap"):
        logout()
        st.rerun()

    page = st.session_state.page
    if page == "Gösterge Paneli":
        dashboard_page()
    elif page == "Ödemeler":
        payments_page(profile)
    elif page == "Harcamalar":
        expenses_page(profile)
    elif page == "Aidat Geçmişim":
        my_dues_page(profile)
    elif page == "Üyeler":
        members_page(profile)
    elif page == "Raporlar":
        reports_page(profile)
    elif page == "Ödemeyenler":
        non_payers_page()
    elif page == "Şifre Yenile":
        settings_page(profile)


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    try:
        profile = auth.get_profile(st.session_state.profile_id)
    except sqlite3.Error:
        store_error("Profil yüklenemedi")
        return
    if profile is None:
        logout()
        st.rerun()

    # Force password change on first login after DB creation
    if profile.is_admin and db.is_force_password_change():
        force_change_password_screen(profile)
        return

    main_app(profile)


if __name__ == "__main__":
    run()
