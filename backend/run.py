from tictactoe import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev; the reloader would
    # start a second reaper in the child process
    socketio.run(app, debug=True, use_reloader=False)
