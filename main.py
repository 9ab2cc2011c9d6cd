"""
RecruitAI - Terminal Client

Interactive front end for the recruiting platform. Recruiters publish
vacancies and review AI-scored applicants; candidates browse open
vacancies and upload their résumés.

All decisions (which screen, what to load, what is allowed) are made by
the ViewController; this file only draws screens and asks questions.
"""

import argparse
import asyncio
import sys
import webbrowser
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, Prompt
from rich.table import Table
from loguru import logger

from config import config
from recruitai.clients.recruiting_client import RecruitingApiClient
from recruitai.orchestrator.schema import ApplicationStatus, AuthMode, Credentials, ResumeFile, Role
from recruitai.orchestrator.view_controller import NoticeLevel, Screen, ScreenStatus, View, ViewController
from recruitai.orchestrator.workflow import VerdictStatus, next_statuses

console = Console()

STATUS_STYLES = {
    "New": "blue",
    "Interview": "magenta",
    "Offer": "green",
    "Rejected": "red",
}


def _score(score) -> str:
    if score is None:
        return "[dim]-[/dim]"
    color = "green" if score >= 80 else "yellow" if score >= 50 else "red"
    return f"[{color}]{score:.0f}%[/{color}]"


def _status(status) -> str:
    value = getattr(status, "value", status)
    return f"[{STATUS_STYLES.get(value, 'blue')}]{value}[/]"


class RecruitApp:
    """Terminal application main class"""

    def __init__(self, base_url: str = None):
        self.console = console
        self.client = RecruitingApiClient(base_url=base_url)
        self.controller = ViewController.create(self.client)

    async def run(self, args):
        """Main application loop"""
        self._show_welcome()

        try:
            if not args.skip_checks and not await self._check_system():
                return

            while True:
                await self.controller.settle()
                screen = self.controller.screen()
                self._show_notices()
                if not await self._handle(screen):
                    break

        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠️  Cancelled by user.[/yellow]")
        except Exception as e:
            logger.exception("Unexpected error")
            self.console.print(f"[red]❌ Error: {str(e)}[/red]")
        finally:
            await self.client.close()
            logger.info("Application closed, HTTP session released.")

    def _show_welcome(self):
        panel = Panel(
            f"""✨ [bold cyan]RecruitAI[/bold cyan]

Hiring with AI-scored résumés, from the terminal.

[dim]Backend: {config.api.base_url}[/dim]""",
            title="Welcome",
            border_style="cyan",
        )
        self.console.print(panel)

    async def _check_system(self) -> bool:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
        ) as progress:
            task = progress.add_task("[cyan]Contacting the recruiting backend...", total=1)
            if await self.client.test_connection():
                progress.update(task, completed=1, description="[green]✅ Backend ready")
                return True
            progress.update(task, completed=1, description="[red]❌ Backend is not reachable")

        self.console.print("Check RECRUIT_API_BASE_URL or start with [cyan]--skip-checks[/cyan].")
        return False

    def _show_notices(self):
        for notice in self.controller.pop_notices():
            style = {NoticeLevel.ERROR: "red", NoticeLevel.SUCCESS: "green"}.get(notice.level, "cyan")
            self.console.print(f"[{style}]{notice.message}[/{style}]")

    # --- Screens ---

    async def _handle(self, screen: Screen) -> bool:
        """Draw `screen` and run one user action. False ends the program."""
        if screen.view == View.AUTH:
            return await self._auth_screen()

        self.console.rule(f"[bold]{screen.view.value.replace('_', ' ').title()}[/bold]  [dim]{screen.identity.email}[/dim]")
        if screen.status == ScreenStatus.LOADING:
            self.console.print("[yellow]Loading...[/yellow]")
            return True
        if screen.status == ScreenStatus.ERROR:
            self.console.print(f"[red]Failed to load: {screen.message}[/red]")
            choice = Prompt.ask("Action", choices=["retry", "home", "logout"], default="retry")
            return self._common(choice)

        handler = getattr(self, f"_screen_{screen.view.value}")
        return await handler(screen)

    def _common(self, choice: str) -> bool:
        if choice == "retry":
            self.controller.refresh()
        elif choice == "home":
            self.controller.go_home()
        elif choice == "logout":
            self.controller.logout()
        elif choice == "quit":
            return False
        return True

    async def _auth_screen(self) -> bool:
        choice = Prompt.ask("Sign in or create an account", choices=["login", "signup", "quit"], default="login")
        if choice == "quit":
            return False
        mode = AuthMode(choice)
        role = Role(Prompt.ask("Role", choices=["recruiter", "candidate"], default="recruiter"))
        email = Prompt.ask("Email")
        password = Prompt.ask("Password", password=True)
        credentials = Credentials(email=email, password=password)
        if mode == AuthMode.SIGNUP:
            if role == Role.RECRUITER:
                credentials.company_name = Prompt.ask("Company name")
            else:
                credentials.contact_handle = Prompt.ask("Telegram @username")

        with self.console.status("Signing in..."):
            await self.controller.authenticate(mode, role, credentials)
        return True

    async def _screen_recruiter_dashboard(self, screen: Screen) -> bool:
        vacancies = screen.data or []
        if screen.status == ScreenStatus.EMPTY:
            self.console.print(f"[dim]{screen.message}[/dim]")
        else:
            table = Table(title="My vacancies")
            table.add_column("#")
            table.add_column("Title")
            table.add_column("Short link")
            table.add_column("State")
            for i, v in enumerate(vacancies, 1):
                table.add_row(str(i), v.title, v.short_link or "-", "[dim]Archived[/dim]" if v.is_archived else "[green]Active[/green]")
            self.console.print(table)

        choice = Prompt.ask("Action", choices=["open", "archive", "new", "templates", "logout", "quit"], default="open")
        if choice == "open" and vacancies:
            self.controller.open_vacancy(self._pick(vacancies))
        elif choice == "archive" and vacancies:
            await self.controller.toggle_archive(self._pick(vacancies))
        elif choice == "new":
            self.controller.navigate(View.CREATE_JOB)
        elif choice == "templates":
            self.controller.navigate(View.TEMPLATES)
        else:
            return self._common(choice)
        return True

    async def _screen_create_job(self, screen: Screen) -> bool:
        title = Prompt.ask("Position title (empty to go back)", default="")
        if not title:
            self.controller.go_home()
            return True
        ai_filters = Prompt.ask("AI filters (skills the AI should look for)")
        await self.controller.create_vacancy(title, ai_filters)
        return True

    async def _screen_job_detail(self, screen: Screen) -> bool:
        self.console.print(f"[bold]{screen.vacancy.title}[/bold]  [dim]{screen.vacancy.short_link or ''}[/dim]")
        applications = screen.data or []
        if screen.status == ScreenStatus.EMPTY:
            self.console.print(f"[dim]{screen.message}[/dim]")
        else:
            table = Table(title=f"Applications: {len(applications)}")
            for column in ("#", "Candidate", "Status", "AI score", "Applied"):
                table.add_column(column)
            for i, app in enumerate(applications, 1):
                applied = app.applied_at.strftime("%Y-%m-%d") if app.applied_at else "-"
                table.add_row(str(i), app.candidate_name or "Candidate", _status(app.status), _score(app.ai_score), applied)
            self.console.print(table)

        choice = Prompt.ask("Action", choices=["open", "home", "logout", "quit"], default="open")
        if choice == "open" and applications:
            self.controller.open_application(self._pick(applications, label=lambda a: a.candidate_name or a.id))
            return True
        return self._common(choice)

    async def _screen_candidate_profile(self, screen: Screen) -> bool:
        app = screen.application
        self.console.print(f"[bold]{app.candidate_name or 'Candidate'}[/bold] {_status(app.status)} {_score(app.ai_score)}")
        self._show_verdict(screen)

        templates = screen.templates
        choices = ["status", "message", "back", "home", "quit"]
        choice = Prompt.ask("Action", choices=choices, default="back")
        if choice == "status":
            options = [s.value for s in ApplicationStatus]
            suggested = next_statuses(app.status)
            default = suggested[0].value if suggested else app.status.value
            status = Prompt.ask("New status", choices=options, default=default)
            await self.controller.set_status(ApplicationStatus(status))
        elif choice == "message":
            if not templates:
                self.console.print("[dim]No templates yet. Create one under Templates.[/dim]")
                return True
            message = await self.controller.generate_message(self._pick(templates, label=lambda t: t.title))
            if message:
                self.console.print(Panel(message.text or "", title="Message"))
                self.console.print(f"[cyan]{message.deep_link}[/cyan]")
                if Confirm.ask("Open in the browser?", default=False):
                    webbrowser.open(message.deep_link)
        elif choice == "back":
            if screen.vacancy:
                self.controller.open_vacancy(screen.vacancy)
            else:
                self.controller.go_home()
        else:
            return self._common(choice)
        return True

    async def _screen_templates(self, screen: Screen) -> bool:
        templates = screen.data or []
        if screen.status == ScreenStatus.EMPTY:
            self.console.print(f"[dim]{screen.message}[/dim]")
        for i, t in enumerate(templates, 1):
            self.console.print(f"{i}. [bold]{t.title}[/bold] [dim]{t.body_text[:100]}[/dim]")

        choice = Prompt.ask("Action", choices=["new", "edit", "delete", "home", "logout", "quit"], default="new")
        if choice == "new":
            self.controller.navigate(View.CREATE_TEMPLATE)
        elif choice == "edit" and templates:
            template = self._pick(templates, label=lambda t: t.title)
            title = Prompt.ask("Title", default=template.title)
            body = Prompt.ask("Text ({name}, {job}, {username})", default=template.body_text)
            await self.controller.update_template(template, title, body)
        elif choice == "delete" and templates:
            template = self._pick(templates, label=lambda t: t.title)
            if Confirm.ask(f"Delete '{template.title}'?", default=False):
                await self.controller.delete_template(template)
        else:
            return self._common(choice)
        return True

    async def _screen_create_template(self, screen: Screen) -> bool:
        title = Prompt.ask("Template title (empty to go back)", default="")
        if not title:
            self.controller.navigate(View.TEMPLATES)
            return True
        body = Prompt.ask("Text, placeholders {name}, {job}, {username}")
        await self.controller.save_template(title, body)
        return True

    async def _screen_active_vacancies(self, screen: Screen) -> bool:
        vacancies = screen.data or []
        if screen.status == ScreenStatus.EMPTY:
            self.console.print(f"[dim]{screen.message}[/dim]")
        for i, v in enumerate(vacancies, 1):
            self.console.print(f"{i}. [bold]{v.title}[/bold]\n   [dim]{v.ai_filters or 'Apply to learn more.'}[/dim]")

        choice = Prompt.ask("Action", choices=["apply", "code", "mine", "logout", "quit"], default="apply")
        if choice == "apply" and vacancies:
            self.controller.choose_vacancy(self._pick(vacancies))
        elif choice == "code":
            vacancy = self.controller.find_vacancy(Prompt.ask("Vacancy code"))
            if vacancy:
                self.controller.choose_vacancy(vacancy)
            else:
                self.console.print("[red]No open vacancy with that code.[/red]")
        elif choice == "mine":
            self.controller.navigate(View.MY_APPLICATIONS)
        else:
            return self._common(choice)
        return True

    async def _screen_upload(self, screen: Screen) -> bool:
        self.console.print(Panel(
            screen.vacancy.ai_filters or "No special requirements; the AI will assess your experience overall.",
            title=f"✅ {screen.vacancy.title}",
        ))
        raw_path = Prompt.ask("Path to your PDF résumé (empty to go back)", default="")
        if not raw_path:
            self.controller.go_home()
            return True

        path = Path(raw_path).expanduser()
        if not path.is_file():
            self.console.print(f"[red]File not found: {path}[/red]")
            return True

        with self.console.status("Uploading..."):
            await self.controller.submit_resume(ResumeFile.from_path(path))
        return True

    async def _screen_my_applications(self, screen: Screen) -> bool:
        applications = screen.data or []
        if screen.status == ScreenStatus.EMPTY:
            self.console.print(f"[dim]{screen.message}[/dim]")
        else:
            table = Table(title="My applications")
            for column in ("#", "Vacancy", "Status", "AI score", "Applied"):
                table.add_column(column)
            for i, app in enumerate(applications, 1):
                applied = app.applied_at.strftime("%Y-%m-%d") if app.applied_at else "-"
                table.add_row(str(i), (app.vacancy_id or "")[:8], _status(app.status), _score(app.ai_score), applied)
            self.console.print(table)

        choice = Prompt.ask("Action", choices=["open", "home", "logout", "quit"], default="open")
        if choice == "open" and applications:
            self.controller.open_application(self._pick(applications, label=lambda a: a.vacancy_id or a.id))
            return True
        return self._common(choice)

    async def _screen_application_detail(self, screen: Screen) -> bool:
        app = screen.application
        self.console.print(f"AI score: {_score(app.ai_score)}  Status: {_status(app.status)}")
        self._show_verdict(screen)

        choice = Prompt.ask("Action", choices=["reload", "back", "home", "quit"], default="back")
        if choice == "reload":
            # Verdicts are re-read on demand only
            self.controller.refresh()
        elif choice == "back":
            self.controller.navigate(View.MY_APPLICATIONS)
        else:
            return self._common(choice)
        return True

    def _show_verdict(self, screen: Screen):
        verdict = screen.verdict
        if verdict is None or verdict.status == VerdictStatus.LOADING:
            self.console.print("[yellow]Loading the AI analysis...[/yellow]")
        elif verdict.status == VerdictStatus.PENDING:
            self.console.print("[yellow]⏳ The AI is still analysing this résumé. Check back in a moment.[/yellow]")
        elif verdict.status == VerdictStatus.FAILED:
            self.console.print(f"[red]Could not load the AI analysis: {verdict.error_message}[/red]")
        else:
            data = verdict.verdict
            self.console.print(Panel(data.verdict or "[dim]No verdict text.[/dim]", title="✨ AI analysis"))
            if data.skills:
                self.console.print("Skills: " + ", ".join(f"[bold]{s}[/bold]" for s in data.skills))
            if data.parsed_resume_text:
                self.console.print(Panel(data.parsed_resume_text[:1500], title="Résumé text", border_style="dim"))

    def _pick(self, items: list, label=lambda item: item.title):
        for i, item in enumerate(items, 1):
            self.console.print(f"  {i}. {label(item)}")
        index = Prompt.ask("Number", choices=[str(i) for i in range(1, len(items) + 1)], default="1")
        return items[int(index) - 1]


def main():
    """Program entry point"""
    parser = argparse.ArgumentParser(
        description="RecruitAI terminal client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   # Normal start
  python main.py --base-url http://localhost:8080  # Local backend
  python main.py --skip-checks                     # Do not ping the backend first
        """,
    )
    parser.add_argument('--base-url', type=str, help='Recruiting backend URL (overrides RECRUIT_API_BASE_URL)')
    parser.add_argument('--skip-checks', action='store_true', help='Skip the backend reachability check')
    args = parser.parse_args()

    app = RecruitApp(base_url=args.base_url)

    try:
        asyncio.run(app.run(args))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Closed.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red]Critical error: {str(e)}[/red]")
        logger.exception("Critical error")
        sys.exit(1)


if __name__ == "__main__":
    main()
