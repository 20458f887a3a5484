from typing import List

from ui.modal import Modal, ModalKind


class PasswordPromptModal(Modal):
    """Master password prompt. The payload is the entered password.

    setup=True asks for the password twice (first run or password change);
    otherwise a single field unlocks the store.
    """

    kind = ModalKind.PASSWORD_PROMPT
    min_width = 44

    def __init__(self, setup: bool = False, title: str = ""):
        super().__init__()
        self.setup = setup
        self.title = title or ("Set Master Password" if setup else "Unlock")
        self.password = ""
        self.confirm = ""
        self.focus = 0

    def _on_key(self, key: str) -> None:
        if key in ("esc", "ctrl+c"):
            self.cancel()
        elif key == "enter":
            self._on_enter()
        elif key in ("tab", "down", "shift+tab", "up"):
            if self.setup:
                self.focus = 1 - self.focus
        elif key == "ctrl+u":
            self._set("")
        elif key == "backspace":
            self._set(self._get()[:-1])
        elif len(key) == 1 and key.isprintable():
            self._set(self._get() + key)

    def _get(self) -> str:
        return self.confirm if self.focus == 1 else self.password

    def _set(self, value: str) -> None:
        if self.focus == 1:
            self.confirm = value
        else:
            self.password = value

    def _on_enter(self) -> None:
        if not self.password:
            self.error = "Password cannot be empty"
            self.focus = 0
            return
        if not self.setup:
            self.submit(self.password)
            return
        if self.focus == 0 and not self.confirm:
            self.focus = 1
            return
        if not self.confirm:
            self.error = "Please confirm password"
            return
        if self.password != self.confirm:
            self.error = "Passwords do not match"
            self.password = ""
            self.confirm = ""
            self.focus = 0
            return
        self.submit(self.password)

    def body_lines(self) -> List[str]:
        lines = [f"{'>' if self.focus == 0 else ' '} Password: {'*' * len(self.password)}"]
        if self.setup:
            lines.append(f"{'>' if self.focus == 1 else ' '} Confirm:  {'*' * len(self.confirm)}")
        lines.append("")
        lines.append(f"! {self.error}" if self.error else "")
        lines.append("Enter confirm · Esc cancel")
        return lines
