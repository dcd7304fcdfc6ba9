import tkinter as tk
from tkinter import ttk, filedialog, messagebox
import tkinter.simpledialog
from tkcalendar import Calendar
from controller import ExamBlockController
from allocator import CapacityError
from ebd_format import BlockFileError
from database import AllocationDatabase
from pdf_export import export_to_pdf, export_desk_grids, export_student_slips
from report import desk_allocations, finalisation_report

EBD_TYPES = [("Exam Block Data","*.ebd")]


class ExamBlockApp:
    def __init__(self, root):
        """
        Initialises the exam block app with the main window and sets up all UI components.
        Configures the menus, exam table, venue/session tree, reference tabs and action buttons.
        """
        self.root = root
        # Persistent database object used for archiving finalisations
        self.db = AllocationDatabase()
        self.controller = ExamBlockController(database=self.db)

        self.setup_menus()

        top_frame = tk.Frame(root)
        top_frame.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        # Exam table, one row per exam in the block
        exam_frame = tk.LabelFrame(top_frame, text="Exams", padx=5, pady=5)
        exam_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        self.exam_tree = ttk.Treeview(exam_frame, columns=("Internal", "Subject", "Date", "Time", "AARA", "Non-AARA"),
                                      show="headings", selectmode="browse")
        for col in self.exam_tree["columns"]:
            self.exam_tree.heading(col, text=col)
            self.exam_tree.column(col, width=90)
        self.exam_tree.column("Subject", width=200)
        self.exam_tree.pack(fill=tk.BOTH, expand=True)
        self.exam_tree.bind("<<TreeviewSelect>>", self.on_exam_selected)

        # Venues with their sessions nested underneath
        venue_frame = tk.LabelFrame(top_frame, text="Venues and Sessions", padx=5, pady=5)
        venue_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=(10, 0))
        self.venue_tree = ttk.Treeview(venue_frame, columns=("Desks", "Type"), selectmode="browse")
        self.venue_tree.heading("#0", text="Venue / Session")
        self.venue_tree.heading("Desks", text="Desks")
        self.venue_tree.heading("Type", text="Type")
        self.venue_tree.column("Desks", width=60)
        self.venue_tree.column("Type", width=80)
        self.venue_tree.pack(fill=tk.BOTH, expand=True)
        self.venue_tree.bind("<<TreeviewSelect>>", self.on_venue_selected)

        # Maps from tree item ids back to model objects
        self.exam_items = {}
        self.venue_items = {}
        self.session_items = {}

        # Reference tables
        self.notebook = ttk.Notebook(root)
        self.notebook.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)
        self.tabs = {
            "Subjects": self.make_tab("Subjects", ("Title", "Description")),
            "Units": self.make_tab("Units", ("Subject", "Unit", "Title")),
            "Students": self.make_tab("Students", ("LUI", "Name", "House", "AARA", "Subjects")),
            "Rooms": self.make_tab("Rooms", ("Room",)),
            "Venues": self.make_tab("Venues", ("Venue", "Rooms", "Layout", "Desks", "AARA")),
        }

        # Buttons
        btn_frame = tk.Frame(root)
        btn_frame.pack(pady=5)
        self.add_button = tk.Button(btn_frame, text="Add", command=self.add_exam)
        self.add_button.pack(side=tk.LEFT, padx=5)
        self.clear_button = tk.Button(btn_frame, text="Clear", command=self.clear)
        self.clear_button.pack(side=tk.LEFT, padx=5)
        self.finalise_button = tk.Button(btn_frame, text="Finalise", command=self.finalise)
        self.finalise_button.pack(side=tk.LEFT, padx=5)
        tk.Button(btn_frame, text="Export PDF", command=self.export_pdf).pack(side=tk.LEFT, padx=5)
        tk.Button(btn_frame, text="Export Student Slips", command=self.export_student_slips).pack(side=tk.LEFT, padx=5)

        self.refresh()

    def make_tab(self, name, columns):
        frame = tk.Frame(self.notebook)
        self.notebook.add(frame, text=name)
        tree = ttk.Treeview(frame, columns=columns, show="headings", height=6)
        for col in columns:
            tree.heading(col, text=col)
            tree.column(col, width=120)
        tree.pack(fill=tk.BOTH, expand=True)
        return tree

    def setup_menus(self):
        menubar = tk.Menu(self.root)

        file_menu = tk.Menu(menubar, tearoff=0)
        file_menu.add_command(label="Load...", command=self.load_file)
        file_menu.add_separator()
        file_menu.add_command(label="Save", command=self.save_file)
        file_menu.add_command(label="Save As", command=self.save_as_file)
        file_menu.add_separator()
        file_menu.add_command(label="Exit", command=self.exit)
        menubar.add_cascade(label="File", menu=file_menu)

        view_menu = tk.Menu(menubar, tearoff=0)
        view_menu.add_command(label="Desk Allocations...", command=self.show_desk_allocations)
        view_menu.add_command(label="Finalise Reports...", command=self.show_finalise_report)
        view_menu.add_command(label="Sessions by Day...", command=self.show_sessions_by_day)
        view_menu.add_command(label="Allocation Log...", command=self.view_allocation_log)
        view_menu.add_command(label="Saved Finalisations...", command=self.show_saved_finalisations)
        menubar.add_cascade(label="View", menu=view_menu)

        self.root.config(menu=menubar)

    def refresh(self):
        """
        Re-renders every table and tree from the controller's exam block and
        updates the window title and button states to match.
        """
        block = self.controller.block
        engine = self.controller.engine
        self.root.title(self.controller.window_title())

        for i in self.exam_tree.get_children():
            self.exam_tree.delete(i)
        self.exam_items = {}
        for exam in block.exams:
            item = self.exam_tree.insert("", tk.END, values=(
                "Yes" if exam.exam_type.value == "INTERNAL" else "",
                exam.short_title,
                exam.date,
                exam.time.strftime("%H:%M"),
                engine.count_students(exam.subject, True),
                engine.count_students(exam.subject, False),
            ))
            self.exam_items[item] = exam

        for i in self.venue_tree.get_children():
            self.venue_tree.delete(i)
        self.venue_items = {}
        self.session_items = {}
        for venue in block.venues:
            item = self.venue_tree.insert("", tk.END, text=venue.venue_id, open=True,
                                          values=(venue.desk_count, "AARA" if venue.aara else "Regular"))
            self.venue_items[item] = venue
            for session in engine.sessions_for(venue):
                label = f"Session {session.session_number}: {session.day} {session.start:%H:%M}"
                s_item = self.venue_tree.insert(item, tk.END, text=label, open=True,
                                                values=(len(engine.session_students(session)), ""))
                self.session_items[s_item] = session
                for exam in session.exams:
                    self.venue_tree.insert(s_item, tk.END, text=exam.short_title)

        self.fill_tab("Subjects", [(s.title, s.description) for s in block.subjects])
        self.fill_tab("Units", [(u.subject.title, u.unit_id, u.title) for u in block.units])
        self.fill_tab("Students", [(s.lui, s.full_name, s.house, "Yes" if s.aara else "No",
                                    len(s.subjects)) for s in block.students])
        self.fill_tab("Rooms", [(r.room_id,) for r in block.rooms])
        self.fill_tab("Venues", [(v.venue_id, " ".join(v.rooms), f"{v.rows}x{v.columns}",
                                  v.desk_count, "Yes" if v.aara else "No") for v in block.venues])
        self.update_buttons()

    def fill_tab(self, name, rows):
        tree = self.tabs[name]
        for i in tree.get_children():
            tree.delete(i)
        for row in rows:
            tree.insert("", tk.END, values=row)

    def update_buttons(self):
        states = self.controller.button_states()
        self.add_button.config(state=tk.NORMAL if states["add"] else tk.DISABLED)
        self.clear_button.config(state=tk.NORMAL if states["clear"] else tk.DISABLED)
        self.finalise_button.config(state=tk.NORMAL if states["finalise"] else tk.DISABLED)

    def on_exam_selected(self, event=None):
        selected = self.exam_tree.selection()
        self.controller.select_exam(self.exam_items.get(selected[0]) if selected else None)
        self.update_buttons()

    def on_venue_selected(self, event=None):
        selected = self.venue_tree.selection()
        item = selected[0] if selected else None
        if item in self.session_items:
            self.controller.select_session(self.session_items[item])
        else:
            # Exam rows under a session do not count as a target
            self.controller.select_venue(self.venue_items.get(item))
        self.update_buttons()

    def load_file(self):
        if self.controller.block.has_data():
            if not messagebox.askyesno("Load", "Loading a new file will clear all existing data. Continue?"):
                return
        file = filedialog.askopenfilename(filetypes=EBD_TYPES)
        if not file:
            return
        try:
            self.controller.load(file)
        except (BlockFileError, OSError) as e:
            messagebox.showerror("Error", f"Error loading file: {str(e)}")
        self.refresh()

    def save_file(self):
        if not self.controller.block.filename:
            self.save_as_file()
            return
        try:
            self.controller.save()
        except OSError as e:
            messagebox.showerror("Error", f"Error saving file: {str(e)}")
        self.refresh()

    def ask_title_and_version(self):
        """
        Asks for the title and version to save under, suggesting the next version.
        Returns None if the user cancels either question.
        """
        block = self.controller.block
        title = tk.simpledialog.askstring("Save As", "Exam block title:", initialvalue=block.title)
        if title is None:
            return None
        version = tk.simpledialog.askfloat("Save As", "Version:", initialvalue=round(block.version + 0.1, 2))
        if version is None:
            return None
        return title, version

    def save_as_file(self):
        answer = self.ask_title_and_version()
        if answer is None:
            return
        file = filedialog.asksaveasfilename(defaultextension=".ebd", filetypes=EBD_TYPES)
        if not file:
            return
        try:
            self.controller.save(file, *answer)
        except OSError as e:
            messagebox.showerror("Error", f"Error saving file: {str(e)}")
        self.refresh()

    def exit(self):
        self.db.close()
        self.root.destroy()

    def add_exam(self):
        state = self.controller.state
        exam = state.selected_exam
        target = state.selected_session or state.selected_venue
        if exam is None or target is None:
            messagebox.showwarning("Warning", "Please select an exam and a venue or existing session.")
            return
        where = target if state.selected_session else target.venue_id
        if not messagebox.askyesno("Confirm", f"CONFIRM scheduling the {exam.subject.title} exam into {where}"):
            return
        try:
            self.controller.add_selected()
        except CapacityError as e:
            messagebox.showerror("Will Not Fit", str(e))
        except ValueError as e:
            messagebox.showwarning("Warning", str(e))
        self.exam_tree.selection_remove(self.exam_tree.selection())
        self.venue_tree.selection_remove(self.venue_tree.selection())
        self.refresh()

    def clear(self):
        count = len(self.controller.block.sessions)
        if count and messagebox.askyesno("Clear",
                                         f"Are you sure you want to remove all {count} session(s)?\n\n"
                                         f"This action cannot be undone."):
            self.controller.remove_all_sessions()
            messagebox.showinfo("Clear", f"All {count} session(s) have been removed successfully.")
        else:
            self.controller.clear_selection()
        self.exam_tree.selection_remove(self.exam_tree.selection())
        self.venue_tree.selection_remove(self.venue_tree.selection())
        self.refresh()

    def finalise(self):
        if not self.controller.block.sessions:
            messagebox.showwarning("Warning", "No sessions to finalise.")
            return
        answer = self.ask_title_and_version()
        if answer is None:
            return
        file = filedialog.asksaveasfilename(defaultextension=".ebd", initialfile="finalised.ebd",
                                            filetypes=EBD_TYPES)
        if not file:
            return
        try:
            report = self.controller.finalise(file, *answer)
        except CapacityError as e:
            messagebox.showerror("Finalise Failed", f"Cannot allocate desks.\n\nReason:\n{str(e)}")
            return
        except OSError as e:
            messagebox.showerror("Error", f"Unable to write finalised files: {str(e)}")
            return
        finally:
            self.refresh()
        self.show_text(report, "Exam Block Viewer")

    def export_pdf(self):
        if not any(s.desks for s in self.controller.block.sessions):
            messagebox.showwarning("Warning", "No desks allocated yet")
            return
        file = filedialog.asksaveasfilename(defaultextension=".pdf", filetypes=[("PDF Files","*.pdf")])
        if file:
            try:
                export_to_pdf(self.controller.block, file)
                export_desk_grids(self.controller.block, file.replace(".pdf", "_grids.pdf"))
            except Exception as e:
                messagebox.showerror("Error", str(e))

    def export_student_slips(self):
        if not any(s.desks for s in self.controller.block.sessions):
            messagebox.showwarning("Warning", "No desks allocated yet")
            return
        folder = filedialog.askdirectory(title="Select folder to save student seat slips")
        if not folder:
            return

        created_count, errors = export_student_slips(self.controller.block, folder)
        if created_count > 0:
            msg = f"Successfully created {created_count} PDF files in {folder}"
            if errors:
                msg += f"\n\n{len(errors)} students failed:\n" + "\n".join(errors[:5])
                if len(errors) > 5:
                    msg += f"\n... and {len(errors) - 5} more"
            messagebox.showinfo("Success", msg)
        else:
            messagebox.showerror("Error", f"Failed to create any PDFs.\n\nErrors:\n" + "\n".join(errors))

    def show_text(self, content, title, default_extension=".txt"):
        """Shows read-only text in a scrollable window with a button to save it."""
        win = tk.Toplevel(self.root)
        win.title(title)
        text = tk.Text(win, width=100, height=35, wrap=tk.WORD, font=("Courier", 10))
        text.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar = tk.Scrollbar(win, command=text.yview)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)
        text.configure(yscrollcommand=scrollbar.set)
        text.insert(tk.END, content)
        text.config(state=tk.DISABLED)

        def save_text():
            file = filedialog.asksaveasfilename(defaultextension=default_extension)
            if file:
                with open(file, "w", encoding="utf-8") as f:
                    f.write(content)
                messagebox.showinfo("Saved", f"{title} saved to {file}")

        tk.Button(win, text="Save", command=save_text).pack(pady=5)

    def show_desk_allocations(self):
        self.show_text(desk_allocations(self.controller.block), "Desk Allocations")

    def show_finalise_report(self):
        self.show_text(finalisation_report(self.controller.block), "Finalisation Report", ".efr")

    def view_allocation_log(self):
        log = self.controller.engine.allocation_log
        if not log:
            messagebox.showinfo("Allocation Log", "Nothing has been scheduled or allocated yet.")
            return
        self.show_text("\n".join(log), "Allocation Log")

    def show_sessions_by_day(self):
        """Show window listing the sessions held on a day picked from a calendar"""
        day_window = tk.Toplevel(self.root)
        day_window.title("Sessions by Day")

        frame = tk.Frame(day_window)
        frame.pack(padx=10, pady=10)

        tk.Label(frame, text="Select Day:").pack(anchor="w", pady=(0,5))
        cal = Calendar(frame, selectmode='day', date_pattern='yyyy-mm-dd')
        cal.pack(pady=5)

        tree = ttk.Treeview(frame, columns=("Venue", "Session", "Start", "Exams", "Students"), show="headings", height=8)
        for col in tree["columns"]:
            tree.heading(col, text=col)
            tree.column(col, width=90)
        tree.pack(fill="both", expand=True, pady=5)

        def show_day(event=None):
            day = cal.get_date()
            for i in tree.get_children():
                tree.delete(i)
            engine = self.controller.engine
            for session in self.controller.block.sessions:
                if str(session.day) == day:
                    tree.insert("", tk.END, values=(session.venue.venue_id, session.session_number,
                                                    session.start.strftime("%H:%M"), len(session.exams),
                                                    len(engine.session_students(session))))

        cal.bind("<<CalendarSelected>>", show_day)
        tk.Button(frame, text="Close", command=day_window.destroy).pack(side="right", padx=5)
        show_day()

    def show_saved_finalisations(self):
        saved_window = tk.Toplevel(self.root)
        saved_window.title("Saved Finalisations")
        saved_window.geometry("700x400")

        tree = ttk.Treeview(saved_window,
                           columns=("ID", "Title", "Version", "Created", "Description"),
                           show="headings")
        for col in tree["columns"]:
            tree.heading(col, text=col)
            tree.column(col, width=100)
        tree.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        for finalisation in self.db.get_saved_finalisations():
            tree.insert("", tk.END, values=finalisation)

        def view_selected():
            selected = tree.selection()
            if not selected:
                messagebox.showwarning("Warning", "Please select a finalisation to view")
                return
            finalisation_id = tree.item(selected[0])['values'][0]
            seats = self.db.load_finalisation(finalisation_id)
            lines = [f"{s.venue_id} session {s.session_number} ({s.day} {s.start}) desk {s.desk_number}: "
                     f"{s.family_name}, {s.given_and_init} [{s.lui}] {s.exam}" for s in seats]
            self.show_text("\n".join(lines) or "No seats recorded.", f"Finalisation {finalisation_id}")

        btn_frame = tk.Frame(saved_window)
        btn_frame.pack(fill=tk.X, padx=10, pady=5)
        tk.Button(btn_frame, text="View Selected",
                 command=view_selected).pack(side=tk.LEFT, padx=5)
        tk.Button(btn_frame, text="Close",
                 command=saved_window.destroy).pack(side=tk.RIGHT, padx=5)


def main():
    root = tk.Tk()
    app = ExamBlockApp(root)
    root.protocol("WM_DELETE_WINDOW", app.exit)
    # The first thing the user does is pick a data file
    root.after(100, app.load_file)
    root.mainloop()


if __name__ == "__main__":
    main()
