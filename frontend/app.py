import os
import time

import streamlit as st

st.set_page_config(
    page_title="Pathfinder Assessment Portal",
    layout="wide"
)
from streamlit_autorefresh import st_autorefresh
import requests
import pandas as pd

API = os.getenv("API_URL", "http://127.0.0.1:8000")

AUTOSAVE_SECS = 5


def init_session():
    defaults = {
        "access_token": None,
        "candidate": None,
        "paper": None,
        "answers": {},
        "proctor_logs": [],
        "exam_started_at": None,
        "time_original": 0,
        "time_remaining": 0,
        "last_saved_at": 0,
        "code_output": {},
        "page": "register",
    }
    for k, v in defaults.items():
        if k not in st.session_state:
            st.session_state[k] = v


if "initialized" not in st.session_state:
    init_session()
    st.session_state["initialized"] = True


def auth_headers():
    token = st.session_state["access_token"]
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def api_call(method, path, **kwargs):
    try:
        return requests.request(method, API + path, timeout=30, **kwargs)
    except requests.RequestException as e:
        st.error(f"Connection error: {e}")
        return None


def api_get(path, headers=None):
    return api_call("GET", path, headers=headers)


def api_post(path, json=None, headers=None):
    return api_call("POST", path, json=json, headers=headers)


def api_put(path, json=None, headers=None):
    return api_call("PUT", path, json=json, headers=headers)


def api_delete(path, headers=None):
    return api_call("DELETE", path, headers=headers)


def error_detail(resp):
    if resp is None:
        return "Connection failed"
    try:
        return resp.json().get("detail", resp.text)
    except ValueError:
        return resp.text


def format_ms(value):
    if not value:
        return ""
    return pd.to_datetime(value, unit="ms").strftime("%Y-%m-%d %H:%M")


def reset_exam_state():
    for key in ("candidate", "paper", "exam_started_at"):
        st.session_state[key] = None
    st.session_state["answers"] = {}
    st.session_state["proctor_logs"] = []
    st.session_state["code_output"] = {}
    st.session_state["page"] = "register"


# -------------------- CANDIDATE --------------------
def register_ui():
    st.title("Pathfinder Assessment Portal")
    st.subheader("Candidate Registration")

    with st.form("register_form"):
        full_name = st.text_input("Full Name")
        email = st.text_input("Email Address")
        col1, col2, col3 = st.columns(3)
        with col1:
            company = st.text_input("Current Company")
        with col2:
            salary = st.text_input("Current Salary")
        with col3:
            notice = st.text_input("Notice Period")
        submitted = st.form_submit_button("Continue", use_container_width=True)

    if not submitted:
        return

    if not full_name or not email:
        st.error("Please enter your name and email")
        return

    resp = api_post("/register", json={
        "email": email,
        "full_name": full_name,
        "current_company": company,
        "current_salary": salary,
        "notice_period": notice,
    })
    if resp is None or resp.status_code != 200:
        st.error(f"Registration failed: {error_detail(resp)}")
        return

    result = resp.json()
    if result["status"] == "REJECTED":
        st.error(result["error"])
        return

    if result["status"] == "RESUMED":
        st.toast("Welcome back, your previous progress will be restored")

    st.session_state["candidate"] = result["candidate"]
    st.session_state["page"] = "instructions"
    st.rerun()


def instructions_ui():
    candidate = st.session_state["candidate"]
    st.title(f"Welcome, {candidate['full_name']}")

    st.markdown(
        """
        **Before you begin**

        - The timer starts as soon as you press *Start Exam* and keeps running if you leave.
        - Answers are saved automatically every few seconds.
        - Leaving the exam window and large pastes are recorded for the reviewers.
        - Code questions have a *Run code* button that shows simulated output.
        - Once submitted the exam cannot be reopened.
        """
    )

    if st.button("Start Exam", type="primary", use_container_width=True):
        start_exam()


def start_exam():
    candidate = st.session_state["candidate"]

    resp = api_post(f"/exam/{candidate['id']}/start")
    if resp is None or resp.status_code != 200:
        st.error(f"Unable to start exam: {error_detail(resp)}")
        return

    data = resp.json()
    submission = data["submission"]
    if submission["status"] != "IN_PROGRESS":
        st.session_state["page"] = "done"
        st.rerun()

    paper = data["paper"]
    started_at = submission["start_time"] / 1000

    st.session_state.update({
        "paper": paper,
        "answers": dict(submission["answers"]),
        "proctor_logs": list(submission["proctor_logs"]),
        "exam_started_at": started_at,
        "time_original": paper["duration"] * 60,
        "last_saved_at": time.time(),
        "page": "exam",
    })
    st.rerun()


def record_event(event_type, details=""):
    st.session_state["proctor_logs"].append({
        "timestamp": int(time.time() * 1000),
        "type": event_type,
        "details": details,
    })


def save_draft(force=False):
    if not force and time.time() - st.session_state["last_saved_at"] < AUTOSAVE_SECS:
        return

    candidate_id = st.session_state["candidate"]["id"]
    resp = api_put(f"/exam/{candidate_id}/draft", json={
        "answers": st.session_state["answers"],
        "proctor_logs": st.session_state["proctor_logs"],
    })
    if resp is not None and resp.status_code == 200:
        st.session_state["last_saved_at"] = time.time()


def submit_exam():
    save_draft(force=True)

    candidate_id = st.session_state["candidate"]["id"]
    resp = api_post(f"/exam/{candidate_id}/submit")

    # 409 means an earlier attempt already got through
    if resp is None or resp.status_code not in (200, 409):
        st.error(f"Unable to submit exam: {error_detail(resp)}")
        return

    st.session_state["page"] = "done"
    st.rerun()


def run_code(question):
    qid = question["id"]
    resp = api_post("/execute", json={
        "code": st.session_state["answers"].get(qid, ""),
        "language": question["code_type"],
    })
    if resp is None or resp.status_code != 200:
        st.session_state["code_output"][qid] = {"type": "error", "content": error_detail(resp)}
        return
    st.session_state["code_output"][qid] = resp.json()


def question_ui(idx, question):
    qid = question["id"]

    st.markdown(f"### Question {idx}: {question['title']}")
    st.caption(f"{question['section']} · {question['marks']} marks")
    st.write(question["text"])

    is_code = question["code_type"] != "text"
    current = st.session_state["answers"].get(qid, "")

    answer = st.text_area(
        "Your answer",
        value=current,
        height=220 if is_code else 120,
        key=f"answer_{qid}",
        label_visibility="collapsed",
    )
    if answer != current:
        if len(answer) - len(current) > 40:
            record_event("COPY_PASTE", f"{qid}: {len(answer) - len(current)} chars added at once")
        st.session_state["answers"][qid] = answer

    if is_code:
        if st.button("Run code", key=f"run_{qid}"):
            with st.spinner("Running..."):
                run_code(question)

        output = st.session_state["code_output"].get(qid)
        if output:
            if output["type"] == "error":
                st.error(output["content"])
            else:
                st.code(output["content"] or "(no output)")

    st.divider()


def exam_ui():
    paper = st.session_state["paper"]
    questions = paper["questions"]

    st_autorefresh(interval=1000, key="exam_timer")

    elapsed = int(time.time() - st.session_state["exam_started_at"])
    remaining = st.session_state["time_original"] - elapsed
    st.session_state["time_remaining"] = max(0, remaining)

    if remaining <= 0:
        st.warning("Time's up! Submitting exam...")
        submit_exam()
        return

    left, right = st.columns([1, 3])

    with left:
        m, s = divmod(st.session_state["time_remaining"], 60)
        if remaining <= 300:
            st.error(f"{m:02d}:{s:02d} remaining")
        else:
            st.info(f"{m:02d}:{s:02d} remaining")

        answered = sum(1 for q in questions if st.session_state["answers"].get(q["id"], "").strip())
        st.metric("Answered", f"{answered}/{len(questions)}")

        violations = len(st.session_state["proctor_logs"])
        if violations:
            st.warning(f"{violations} proctoring event(s) recorded")

        if st.button("I left the exam window", use_container_width=True):
            record_event("TAB_SWITCH", "reported by candidate")

        st.caption("Progress is saved automatically")

    with right:
        st.header(paper["title"])
        if paper["description"]:
            st.write(paper["description"])

        sections = []
        for q in questions:
            if q["section"] not in sections:
                sections.append(q["section"])

        idx = 1
        for tab, section in zip(st.tabs(sections), sections):
            with tab:
                for q in questions:
                    if q["section"] == section:
                        question_ui(idx, q)
                        idx += 1

        if st.button("Submit Exam", type="primary", use_container_width=True):
            submit_exam()
            return

    save_draft()


def done_ui():
    st.title("Thank you!")
    st.success("Your exam has been submitted. The hiring team will be in touch.")
    if st.button("Back to start"):
        reset_exam_state()
        st.rerun()


# -------------------- ADMIN --------------------
def admin_login_ui():
    st.subheader("Admin Login")

    with st.form("admin_login_form"):
        pwd = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", use_container_width=True)

    if not submitted:
        return

    resp = api_post("/admin/login", json={"password": pwd})
    if resp is None or resp.status_code != 200:
        st.error("Invalid password")
        return

    st.session_state["access_token"] = resp.json()["access_token"]
    st.rerun()


def results_tab():
    resp = api_get("/admin/results", headers=auth_headers())
    if resp is None or resp.status_code != 200:
        st.error("Unable to load results")
        return

    rows = resp.json()
    if not rows:
        st.info("No candidates registered yet")
        return

    df = pd.DataFrame(rows)
    df["start_time"] = df["start_time"].map(format_ms)
    df["end_time"] = df["end_time"].map(format_ms)

    status_filter = st.multiselect(
        "Filter by Status",
        options=df["status"].unique(),
        default=df["status"].unique(),
    )
    filtered = df[df["status"].isin(status_filter)]

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Candidates", len(filtered))
    with col2:
        st.metric("Awaiting grading", int((filtered["status"] == "SUBMITTED").sum()))
    with col3:
        st.metric("Graded", int((filtered["status"] == "GRADED").sum()))
    with col4:
        st.metric("Passed", int((filtered["pass_fail"] == "PASS").sum()))

    st.dataframe(filtered, use_container_width=True, hide_index=True)

    st.markdown("---")
    st.subheader("Manage a candidate")

    options = {f"{r['candidate_name']} <{r['candidate_email']}> [{r['status']}]": r for r in rows}
    choice = st.selectbox("Candidate", list(options))
    row = options[choice]
    cid = row["candidate_id"]

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("Evaluate", disabled=row["status"] not in ("SUBMITTED", "GRADED"),
                     use_container_width=True):
            with st.spinner("Grading..."):
                resp = api_post(f"/admin/submissions/{cid}/evaluate", headers=auth_headers())
            if resp is not None and resp.status_code == 200:
                st.success(f"Score: {resp.json()['total_score']} / {resp.json()['max_score']}")
            else:
                st.error(error_detail(resp))
    with col2:
        if st.button("Reset attempt", disabled=row["status"] == "NOT_STARTED", use_container_width=True):
            api_delete(f"/admin/submissions/{cid}", headers=auth_headers())
            st.rerun()
    with col3:
        if st.button("Delete candidate", use_container_width=True):
            api_delete(f"/admin/candidates/{cid}", headers=auth_headers())
            st.rerun()

    if row["status"] == "GRADED":
        resp = api_get("/admin/submissions", headers=auth_headers())
        if resp is not None and resp.status_code == 200:
            submission = next((s for s in resp.json() if s["candidate_id"] == cid), None)
            evaluation = submission and submission["ai_evaluation"]
            if evaluation:
                st.write(f"**{evaluation['pass_fail']}**: {evaluation['summary']}")
                for qid, item in evaluation["question_evaluations"].items():
                    with st.expander(f"{qid}: {item['score']}"):
                        st.write("**Answer:**")
                        st.code(submission["answers"].get(qid, "") or "(no answer)")
                        st.write(item["feedback"])


def papers_tab():
    resp = api_get("/admin/papers", headers=auth_headers())
    if resp is None or resp.status_code != 200:
        st.error("Unable to load papers")
        return

    papers = resp.json()
    for paper in papers:
        with st.expander(f"{paper['title']} ({len(paper['questions'])} questions)"):
            col1, col2 = st.columns(2)
            with col1:
                st.metric("Duration", f"{paper['duration']} min")
            with col2:
                st.metric("Total marks", sum(q["marks"] for q in paper["questions"]))
            st.caption(f"Created: {format_ms(paper['created_at'])} · ID: {paper['id']}")

            st.dataframe(
                pd.DataFrame(paper["questions"])[["section", "title", "code_type", "marks"]],
                use_container_width=True,
                hide_index=True,
            )

            export = api_get(f"/admin/papers/{paper['id']}/export", headers=auth_headers())
            if export is not None and export.status_code == 200:
                st.download_button("Export CSV", export.content, file_name=f"{paper['id']}.csv",
                                   key=f"export_{paper['id']}")
            if st.button("Delete paper", key=f"delete_{paper['id']}"):
                api_delete(f"/admin/papers/{paper['id']}", headers=auth_headers())
                st.rerun()

    st.markdown("---")
    st.subheader("Import a paper from CSV")

    template = api_get("/admin/papers/template", headers=auth_headers())
    if template is not None and template.status_code == 200:
        st.download_button("Download 20-question template", template.content,
                           file_name="exam_template_20q.csv")

    with st.form("import_form"):
        title = st.text_input("Paper Title")
        description = st.text_input("Description")
        duration = st.number_input("Duration (minutes)", min_value=5, max_value=240, value=60)
        upload = st.file_uploader("CSV file", type=["csv"])
        submitted = st.form_submit_button("Import", use_container_width=True)

    if submitted:
        if not title or upload is None:
            st.error("Please give a title and a CSV file")
            return
        resp = api_post("/admin/papers/import", headers=auth_headers(), json={
            "title": title,
            "description": description,
            "duration": int(duration),
            "csv_text": upload.getvalue().decode("utf-8", errors="replace"),
        })
        if resp is not None and resp.status_code == 200:
            st.success(f"Imported {len(resp.json()['questions'])} questions")
            time.sleep(0.5)
            st.rerun()
        else:
            st.error(f"Import failed: {error_detail(resp)}")


def assignments_tab():
    papers_resp = api_get("/admin/papers", headers=auth_headers())
    if papers_resp is None or papers_resp.status_code != 200:
        st.error("Unable to load papers")
        return

    papers = {p["title"]: p["id"] for p in papers_resp.json()}
    if not papers:
        st.info("Create a paper first before assigning!")
        return

    with st.form("assign_form"):
        selected = st.selectbox("Paper", list(papers))
        emails_text = st.text_area("Candidate emails (one per line)", height=120)
        submitted = st.form_submit_button("Assign", use_container_width=True)

    if submitted:
        emails = [e.strip() for e in emails_text.split("\n") if e.strip()]
        if not emails:
            st.error("Please enter at least one email address")
        failed = []
        for email in emails:
            resp = api_post("/admin/assignments", headers=auth_headers(),
                            json={"email": email, "paper_id": papers[selected]})
            if resp is None or resp.status_code != 200:
                failed.append(email)
        if failed:
            st.error(f"Could not assign: {', '.join(failed)}")
        elif emails:
            st.success(f"Assigned {len(emails)} candidate(s)")

    resp = api_get("/admin/assignments", headers=auth_headers())
    if resp is None or resp.status_code != 200:
        return

    assignments = resp.json()
    if not assignments:
        st.info("No assignments yet")
        return

    df = pd.DataFrame(assignments)
    df["assigned_at"] = df["assigned_at"].map(format_ms)
    st.dataframe(df, use_container_width=True, hide_index=True)

    remove = st.selectbox("Remove assignment", [a["email"] for a in assignments], index=None)
    if remove and st.button("Remove"):
        target = next(a for a in assignments if a["email"] == remove)
        api_delete(f"/admin/assignments/{target['id']}", headers=auth_headers())
        st.rerun()


def demo_tab():
    st.write("Create a candidate with a submitted, pre-filled attempt on the default paper, ready to evaluate.")
    profile = st.radio("Profile", ["strong", "average"], horizontal=True)
    if st.button("Create demo candidate"):
        resp = api_post("/admin/demo-candidates", json={"profile": profile}, headers=auth_headers())
        if resp is not None and resp.status_code == 200:
            st.success(f"Created {resp.json()['email']}")
        else:
            st.error(error_detail(resp))


def admin_dashboard():
    if not st.session_state["access_token"]:
        admin_login_ui()
        return

    st.title("Admin Dashboard")

    health = api_get("/health")
    if health is not None and health.status_code == 200:
        st.caption(f"Storage mode: {health.json()['mode']}")

    tab1, tab2, tab3, tab4 = st.tabs(["Results", "Question Papers", "Assignments", "Demo"])
    with tab1:
        results_tab()
    with tab2:
        papers_tab()
    with tab3:
        assignments_tab()
    with tab4:
        demo_tab()

    if st.sidebar.button("Logout", use_container_width=True):
        st.session_state["access_token"] = None
        st.rerun()


def main():
    st.sidebar.title("Pathfinder")

    # navigation is locked while an exam runs
    if st.session_state["page"] == "exam":
        exam_ui()
        return

    view = st.sidebar.radio("Navigation", ["Candidate", "Admin"])
    if view == "Admin":
        admin_dashboard()
        return

    page = st.session_state["page"]
    if page == "instructions":
        instructions_ui()
    elif page == "done":
        done_ui()
    else:
        register_ui()


if __name__ == "__main__":
    main()
