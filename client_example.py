"""
WebSocket Chat Relay Client Example
Interactive client and scripted scenarios for manual testing
"""

import asyncio
import json
import websockets
from typing import Any, Dict, List, Optional
import argparse
import sys

class ChatClient:
    """WebSocket chat relay client"""

    def __init__(self, username: str, server_url: str = "ws://localhost:5000/ws", forwarded_for: Optional[str] = None):
        self.username = username
        self.server_url = server_url
        # Lets scripted scenarios pose as different identities on one machine
        self.forwarded_for = forwarded_for
        self.websocket = None
        self.room_code: Optional[str] = None
        self.rooms: List[Dict[str, Any]] = []
        self.running = False

    async def connect(self) -> bool:
        """Connect to the relay and wait for the room listing or a rejection"""
        headers = {"X-Forwarded-For": self.forwarded_for} if self.forwarded_for else None
        try:
            self.websocket = await websockets.connect(self.server_url, additional_headers=headers)
            print(f"✅ Connected to {self.server_url}")
        except Exception as e:
            print(f"❌ Connection failed: {e}")
            return False

        event, data = await self.receive()
        if event == "connection_rejected":
            print(f"❌ Rejected: {data.get('message')}")
            return False
        if event == "available_rooms":
            self.show_rooms(data)
        return True

    async def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Send an event to the relay"""
        if not self.websocket:
            return False

        try:
            await self.websocket.send(json.dumps({"event": event, "data": data or {}}))
            return True
        except Exception as e:
            print(f"❌ Send failed: {e}")
            return False

    async def receive(self):
        """Read one event frame"""
        frame = json.loads(await self.websocket.recv())
        return frame.get("event"), frame.get("data")

    async def wait_for(self, *events: str, timeout: float = 5.0):
        """Read frames until one of events arrives, printing the rest"""
        while True:
            event, data = await asyncio.wait_for(self.receive(), timeout=timeout)
            if event in events:
                return event, data
            self.show_event(event, data)

    async def create_room(self, name: str, max_users: Optional[int] = None) -> Optional[str]:
        """Create a room and return its code"""
        payload: Dict[str, Any] = {"roomName": name}
        if max_users:
            payload["maxUsers"] = max_users
        await self.emit("create_room", payload)

        event, data = await self.wait_for("room_created", "create_room_error")
        if event == "create_room_error":
            print(f"❌ Create failed: {data.get('message')}")
            return None
        print(f"🏠 Room created: {name} ({data['roomCode']})")
        return data["roomCode"]

    async def join_room(self, room_code: str) -> bool:
        """Join a room"""
        await self.emit("join_room", {"roomCode": room_code, "username": self.username})

        event, data = await self.wait_for("room_history", "join_room_error")
        if event == "join_room_error":
            print(f"❌ Join failed: {data.get('message')}")
            return False

        self.room_code = room_code
        users = ", ".join(user["username"] for user in data.get("users", []))
        print(f"✅ Joined {room_code} as {self.username} | users: {users}")
        for message in data.get("messages", []):
            self.show_event("receive_message", message)
        return True

    async def send_message(self, text: str) -> bool:
        """Send a message to the current room"""
        return await self.emit("send_message", {"text": text})

    async def leave_room(self) -> bool:
        self.room_code = None
        return await self.emit("leave_room")

    async def request_rooms(self) -> bool:
        return await self.emit("get_rooms")

    def show_rooms(self, rooms: List[Dict[str, Any]]):
        self.rooms = rooms
        print(f"📋 Open rooms ({len(rooms)}):")
        for room in rooms:
            print(f"   • {room['code']} {room['name']} ({room['userCount']}/{room['maxUsers']})")

    def show_event(self, event: str, data: Any):
        """Print an inbound event"""
        if event == "receive_message":
            print(f"📨 [{data['timestamp'][11:19]}] {data['username']}: {data['text']}")
        elif event == "available_rooms":
            self.show_rooms(data)
        elif event == "user_joined":
            print(f"👋 {data['user']['username']} joined ({data['userCount']} users)")
        elif event == "user_left":
            print(f"🚪 {data['username']} left ({data['userCount']} users)")
        elif event == "room_list_updated":
            print("🔄 Room list changed, /rooms to refresh")
        elif event == "host_info":
            print(f"🖥️  Connected as {data['ip']} ({data['host']})")
        elif event in ("message_error", "join_room_error", "create_room_error", "error"):
            print(f"❌ Server error: {data.get('message')}")
        else:
            print(f"❓ {event}: {data}")

    async def listen_for_messages(self):
        """Listen for incoming events"""
        try:
            while self.running:
                try:
                    event, data = await asyncio.wait_for(self.receive(), timeout=1.0)
                    self.show_event(event, data)
                except asyncio.TimeoutError:
                    continue
        except websockets.exceptions.ConnectionClosed:
            print("🔌 Connection closed by server")

    async def disconnect(self):
        """Disconnect from the relay"""
        self.running = False
        if self.websocket:
            await self.websocket.close()
            print("🔌 Disconnected from server")

    async def run_interactive(self):
        """Run interactive chat session"""
        if not await self.connect():
            return

        self.running = True
        listen_task = asyncio.create_task(self.listen_for_messages())
        loop = asyncio.get_running_loop()

        try:
            print("\n🎮 Interactive mode started!")
            print("Commands: /rooms, /create <name> [max], /join <code>, /leave, /quit, or just type your message")
            print("-" * 50)

            while self.running:
                try:
                    user_input = (await loop.run_in_executor(None, input, f"{self.username}> ")).strip()
                except (KeyboardInterrupt, EOFError):
                    break

                if not user_input:
                    continue

                command, _, rest = user_input.partition(" ")
                if command == "/quit":
                    break
                elif command == "/rooms":
                    await self.request_rooms()
                elif command == "/create":
                    name, _, max_users = rest.rpartition(" ")
                    if not max_users.isdigit():
                        name, max_users = rest, ""
                    await self.emit("create_room", {"roomName": name, "maxUsers": int(max_users) if max_users else None})
                elif command == "/join":
                    await self.emit("join_room", {"roomCode": rest, "username": self.username})
                    self.room_code = rest.upper()
                elif command == "/leave":
                    await self.leave_room()
                else:
                    await self.send_message(user_input)

        finally:
            self.running = False
            listen_task.cancel()
            await self.disconnect()

async def scenario_chat(server_url: str):
    """Scenario: create a room, two users join and chat"""
    print("\n🧪 Scenario: Room Chat")
    print("=" * 60)

    alice = ChatClient("alice", server_url, forwarded_for="10.0.0.1")
    bob = ChatClient("bob", server_url, forwarded_for="10.0.0.2")
    if not (await alice.connect() and await bob.connect()):
        return

    code = await alice.create_room("Lobby")
    if code and await alice.join_room(code) and await bob.join_room(code):
        await alice.send_message("Hello Bob!")
        print(await bob.wait_for("receive_message"))
        await bob.send_message("Hi Alice!")
        print(await alice.wait_for("receive_message"))
        await bob.leave_room()
        print(await alice.wait_for("user_left"))

    await alice.disconnect()
    await bob.disconnect()
    print("✅ Scenario completed")

async def scenario_duplicate(server_url: str):
    """Scenario: a second connection from the same identity is rejected"""
    print("\n🧪 Scenario: Duplicate Identity")
    print("=" * 60)

    first = ChatClient("first", server_url, forwarded_for="10.0.0.9")
    second = ChatClient("second", server_url, forwarded_for="10.0.0.9")
    if await first.connect():
        accepted = await second.connect()
        print(f"Second connection accepted: {accepted}")
        await first.disconnect()
    print("✅ Scenario completed")

async def main():
    """Main function with command line interface"""
    parser = argparse.ArgumentParser(description="WebSocket Chat Relay Client")
    parser.add_argument("--username", default="testuser", help="Display name used when joining rooms")
    parser.add_argument("--server", default="ws://localhost:5000/ws", help="Server URL")
    parser.add_argument("--scenario", choices=["chat", "duplicate"], help="Run a scripted scenario")

    args = parser.parse_args()

    if args.scenario == "chat":
        await scenario_chat(args.server)
    elif args.scenario == "duplicate":
        await scenario_duplicate(args.server)
    else:
        client = ChatClient(args.username, args.server)
        await client.run_interactive()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Client error: {e}")
        sys.exit(1)
