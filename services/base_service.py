# services/base_service.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar, Generic, Any, Optional

if TYPE_CHECKING:
    from services.storage_service import StorageService

# 永続化するデータを表すジェネリック型を定義
T = TypeVar('T')

class BaseService(Generic[T], ABC):
    """
    永続化を伴うすべてのサービスクラスの基底となる抽象クラス（ABC）。

    データロードとセーブの共通インターフェースを定義します。
    具象サービスクラスは、特定のデータ（例: 図面ストアのJSON文書）を扱うために、
    このクラスを継承し、抽象メソッドを実装する必要があります。

    Attributes:
        storage_service (Optional[StorageService]): ローカルストレージサービスへの参照。
            None の場合、サービスはメモリ上でのみ動作する。
    """

    def __init__(self, storage_service: Optional[StorageService] = None) -> None:
        """BaseServiceのコンストラクタ。

        Args:
            storage_service (Optional[StorageService]): ストレージサービスインスタンス。
        """
        self.storage_service = storage_service

    @abstractmethod
    def load_data(self, identifier: Any) -> Optional[T]:
        """
        指定された識別子を使用してデータを読み込むための抽象メソッド。

        Args:
            identifier (Any): データを一意に識別するためのキー（例: ファイル名）。

        Returns:
            Optional[T]: 読み込まれたデータ。見つからない場合はNone。
        """

    @abstractmethod
    def save_data(self, data: T) -> None:
        """
        データを永続化するための抽象メソッド。

        Args:
            data (T): 保存するデータ。
        """
