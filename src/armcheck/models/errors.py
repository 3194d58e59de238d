"""armcheckのカスタム例外クラス。"""


class ArmcheckError(Exception):
    """armcheckの基底例外クラス。"""


class TemplateNotFoundError(ArmcheckError):
    """指定されたテンプレートファイルが見つからない場合の例外。"""

    def __init__(self, path: str) -> None:
        super().__init__(f"Template not found: {path}")
        self.path = path


class InvalidTemplateError(ArmcheckError):
    """テンプレートの構造が解釈できない場合の例外。"""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message if source is None else f"{message} ({source})")
        self.source = source


class PolicyLoadError(ArmcheckError):
    """バリデーションポリシーの読み込みに失敗した場合の例外。"""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to load validation policy {path}: {reason}")
        self.path = path
        self.reason = reason
